"""
Biological interpretation of differential gene sets.

Modules:
    id_mapping: Gene identifier conversion through mygene.info
    annotation_providers: Gene Ontology annotations (GAF + OBO)
    enrichment_tests: Hypergeometric over-representation with FDR correction

Examples:
    >>> from exprdiff.validation import MyGeneInfoMapper, map_identifiers
    >>> entrez = map_identifiers(split.up.index, MyGeneInfoMapper())
"""

from exprdiff.validation.annotation_providers import (
    AnnotationProvider,
    GOAnnotationProvider,
)

from exprdiff.validation.enrichment_tests import (
    EnrichmentResult,
    HypergeometricTest,
    run_go_enrichment,
)

from exprdiff.validation.id_mapping import (
    IDMapper,
    MyGeneInfoMapper,
    map_identifiers,
)

__all__ = [
    'AnnotationProvider',
    'GOAnnotationProvider',
    'EnrichmentResult',
    'HypergeometricTest',
    'run_go_enrichment',
    'IDMapper',
    'MyGeneInfoMapper',
    'map_identifiers',
]
