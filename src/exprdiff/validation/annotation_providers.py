"""
Gene Ontology annotations for enrichment of differential gene sets.

Parses the two standard GO distribution files:
    - GAF (gene association file): gene -> GO term, one association per line
    - OBO (ontology): GO term -> name and namespace

Both are downloaded once into a cache directory, or read from local files.

Design Principles:
    - Abstract interface so enrichment code does not care where terms come from
    - Unknown genes get empty sets, never an error
    - Associations are direct (no propagation up the ontology)

Examples:
    >>> from exprdiff.validation.annotation_providers import GOAnnotationProvider
    >>>
    >>> provider = GOAnnotationProvider(id_type='symbol')
    >>> provider.get_annotations('TP53')['go_biological_process']
    {'GO:0006915', ...}
    >>> provider.get_term_name('GO:0006915')
    'apoptotic process'
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Set, Optional
from pathlib import Path
import gzip
import logging

from exprdiff.utils.fileio import atomic_download

logger = logging.getLogger(__name__)

__all__ = [
    'AnnotationProvider',
    'GOAnnotationProvider',
    'GO_NAMESPACES',
    'GAF_URLS',
]

# OBO namespace -> annotation category
GO_NAMESPACES = {
    'biological_process': 'go_biological_process',
    'molecular_function': 'go_molecular_function',
    'cellular_component': 'go_cellular_component',
}

GAF_URLS = {
    'human': 'http://current.geneontology.org/annotations/goa_human.gaf.gz',
    'mouse': 'http://current.geneontology.org/annotations/mgi.gaf.gz',
    'rat': 'http://current.geneontology.org/annotations/rgd.gaf.gz',
}

OBO_URL = 'http://purl.obolibrary.org/obo/go.obo'


class AnnotationProvider(ABC):
    """
    Abstract interface for gene annotation databases.

    Key Methods:
        get_annotations(gene_id): All annotations for a gene, by category
        get_term_name(term_id): Human-readable name for a term
        get_genes_for_term(term_id): Reverse lookup, needed for enrichment
        get_all_terms(): Every term with at least one gene
    """

    @abstractmethod
    def get_annotations(self, gene_id: str) -> Dict[str, Set[str]]:
        """
        Get annotations for a gene.

        Returns:
            Mapping of category -> set of term IDs, e.g.
            {'go_biological_process': {'GO:0006915'}, ...}.
            Empty sets if the gene is unknown.
        """
        pass

    @abstractmethod
    def get_term_name(self, term_id: str) -> str:
        pass

    @abstractmethod
    def get_genes_for_term(self, term_id: str) -> Set[str]:
        pass

    @abstractmethod
    def get_all_terms(self) -> Set[str]:
        pass

    def get_terms_in_category(self, category: str) -> Set[str]:
        """Terms belonging to one annotation category (default: all terms)."""
        return self.get_all_terms()

    def get_background_genes(self) -> Set[str]:
        """
        All genes with at least one annotation.

        Default implementation: union of all genes across all terms.
        """
        all_genes = set()
        for term in self.get_all_terms():
            all_genes.update(self.get_genes_for_term(term))
        return all_genes


def _open_text(path: Path):
    with open(path, 'rb') as f:
        magic = f.read(2)
    if magic == b'\x1f\x8b':
        return gzip.open(path, 'rt')
    return open(path, 'r')


class GOAnnotationProvider(AnnotationProvider):
    """
    Gene Ontology annotation provider.

    Args:
        annotation_file: GAF file (plain or gzipped). Downloaded for
            `species` when None.
        obo_file: GO OBO file. Downloaded when None.
        cache_dir: Directory for downloaded files
            (default: ~/.cache/exprdiff/go/).
        id_type: Gene key taken from each GAF line: 'symbol' (column 3)
            or 'uniprot' (column 2, the DB object ID).
        species: Key of GAF_URLS used for download.
        exclude_evidence: Evidence codes to skip (e.g., {'IEA'}).

    Examples:
        >>> provider = GOAnnotationProvider(
        ...     annotation_file='goa_human.gaf.gz',
        ...     obo_file='go.obo',
        ... )
        >>> provider.get_genes_for_term('GO:0006915')
    """

    def __init__(
        self,
        annotation_file: Optional[Path] = None,
        obo_file: Optional[Path] = None,
        cache_dir: Optional[Path] = None,
        id_type: str = 'symbol',
        species: str = 'human',
        exclude_evidence: Optional[Set[str]] = None,
    ):
        if id_type not in ('symbol', 'uniprot'):
            raise ValueError(f"id_type must be 'symbol' or 'uniprot', got '{id_type}'")
        if species not in GAF_URLS and annotation_file is None:
            raise ValueError(f"No GO annotation download for species '{species}'. Known: {sorted(GAF_URLS)}")

        self.cache_dir = Path(cache_dir) if cache_dir else Path.home() / '.cache' / 'exprdiff' / 'go'
        self.id_type = id_type
        self.species = species
        self.exclude_evidence = set(exclude_evidence or ())

        if annotation_file is None or obo_file is None:
            self.cache_dir.mkdir(parents=True, exist_ok=True)

        self.annotation_file = Path(annotation_file) if annotation_file else atomic_download(
            GAF_URLS[species], self.cache_dir / Path(GAF_URLS[species]).name
        )
        self.obo_file = Path(obo_file) if obo_file else atomic_download(OBO_URL, self.cache_dir / 'go.obo')

        for path in (self.annotation_file, self.obo_file):
            if not path.exists():
                raise FileNotFoundError(f"GO file not found: {path}")

        self._gene_to_terms: Dict[str, Dict[str, Set[str]]] = {}
        self._term_to_genes: Dict[str, Set[str]] = {}
        self._term_names: Dict[str, str] = {}
        self._term_namespaces: Dict[str, str] = {}

        self._parse_obo()
        self._parse_gaf()

    def _parse_obo(self) -> None:
        """Parse GO term names and namespaces from the OBO file."""
        with _open_text(self.obo_file) as f:
            current_id = None
            current_name = None
            current_namespace = None
            in_term = False

            for line in f:
                line = line.strip()

                if line.startswith('['):
                    if current_id:
                        self._term_names[current_id] = current_name or current_id
                        self._term_namespaces[current_id] = current_namespace or 'unknown'
                    current_id = None
                    current_name = None
                    current_namespace = None
                    in_term = line == '[Term]'

                elif not in_term:
                    continue

                elif line.startswith('id: GO:'):
                    current_id = line[4:]

                elif line.startswith('name: '):
                    current_name = line[6:]

                elif line.startswith('namespace: '):
                    current_namespace = line[11:]

            if current_id:
                self._term_names[current_id] = current_name or current_id
                self._term_namespaces[current_id] = current_namespace or 'unknown'

        logger.info(f"Loaded {len(self._term_names):,} GO terms")

    def _parse_gaf(self) -> None:
        """Parse gene-term associations from the GAF file."""
        n_skipped_not = 0
        with _open_text(self.annotation_file) as f:
            for line in f:
                if line.startswith('!'):
                    continue

                fields = line.rstrip('\n').split('\t')
                if len(fields) < 13:
                    continue

                # NOT qualifiers negate the association
                if 'NOT' in fields[3].split('|'):
                    n_skipped_not += 1
                    continue

                if fields[6] in self.exclude_evidence:
                    continue

                gene_id = fields[2] if self.id_type == 'symbol' else fields[1]
                go_id = fields[4]
                if not gene_id:
                    continue

                category = GO_NAMESPACES.get(self._term_namespaces.get(go_id, 'unknown'))
                if not category:
                    continue

                if gene_id not in self._gene_to_terms:
                    self._gene_to_terms[gene_id] = {c: set() for c in GO_NAMESPACES.values()}
                self._gene_to_terms[gene_id][category].add(go_id)

                self._term_to_genes.setdefault(go_id, set()).add(gene_id)

        logger.info(
            f"Loaded GO annotations: {len(self._gene_to_terms):,} genes, "
            f"{len(self._term_to_genes):,} terms ({n_skipped_not:,} NOT associations skipped)"
        )

    def get_annotations(self, gene_id: str) -> Dict[str, Set[str]]:
        return self._gene_to_terms.get(gene_id, {c: set() for c in GO_NAMESPACES.values()})

    def get_term_name(self, term_id: str) -> str:
        return self._term_names.get(term_id, term_id)

    def get_genes_for_term(self, term_id: str) -> Set[str]:
        return self._term_to_genes.get(term_id, set())

    def get_all_terms(self) -> Set[str]:
        return set(self._term_to_genes.keys())

    def get_terms_in_category(self, category: str) -> Set[str]:
        """
        Terms of one GO namespace.

        Args:
            category: OBO namespace ('biological_process') or category key
                ('go_biological_process').
        """
        namespace = category[3:] if category.startswith('go_') else category
        if namespace not in GO_NAMESPACES:
            raise ValueError(f"Unknown GO namespace '{category}'. Known: {sorted(GO_NAMESPACES)}")
        return {t for t in self._term_to_genes if self._term_namespaces.get(t) == namespace}
