"""
Gene identifier mapping utilities

Handles conversion between identifier systems:
- Gene Symbol (TP53, SOD1, etc.)
- Entrez Gene ID (7157, etc.)
- Ensembl Gene ID (ENSG00000xxxxxx)
- UniProt ID (P04637, etc.)

Uses mygene.info API with an on-disk JSON cache.

Examples:
    >>> from exprdiff.validation.id_mapping import MyGeneInfoMapper, map_identifiers
    >>>
    >>> mapper = MyGeneInfoMapper()
    >>> mapper.map_ids(['TP53', 'BRCA1'], source_type='symbol', target_type='entrez')
    {'TP53': '7157', 'BRCA1': '672'}
    >>>
    >>> table = map_identifiers(split.up.index, mapper)
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence
from pathlib import Path
from abc import ABC, abstractmethod
import hashlib
import json
import logging

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

__all__ = ['IDMapper', 'MyGeneInfoMapper', 'map_identifiers', 'MYGENE_FIELDS']

# Type names -> mygene.info query fields
MYGENE_FIELDS = {
    'ensembl_gene': 'ensembl.gene',
    'symbol': 'symbol',
    'symbol_alias': 'symbol,alias',
    'uniprot': 'uniprot',  # Matches both Swiss-Prot and TrEMBL
    'entrez': 'entrezgene',
}


class IDMapper(ABC):
    """Abstract interface for gene ID mapping"""

    @abstractmethod
    def map_ids(
        self,
        source_ids: List[str],
        source_type: str,
        target_type: str,
        species: str = 'human',
    ) -> Dict[str, str]:
        """
        Map gene IDs from source to target type

        Args:
            source_ids: List of source IDs
            source_type: 'ensembl_gene', 'symbol', 'uniprot', 'entrez'
            target_type: Same options as source_type
            species: Species name or taxonomy ID understood by the backend

        Returns:
            Dict mapping source_id → target_id (successful mappings only)
        """
        pass


class MyGeneInfoMapper(IDMapper):
    """
    Uses mygene.info API for ID mapping with batched queries

    Advantages:
    - Comprehensive (all major ID types)
    - Batch queries of up to 1000 IDs
    - No authentication required
    - Up-to-date annotations

    Batches are queried one after another; results are cached per
    (source type, target type, species, ID set).
    """

    def __init__(self, cache_dir: Optional[Path] = None, batch_size: int = 1000):
        """
        Args:
            cache_dir: Directory for caching results (default: ~/.cache/exprdiff/id_mapping)
            batch_size: IDs per mygene.info request (service maximum is 1000)
        """
        import mygene
        self.mg = mygene.MyGeneInfo()
        self.cache_dir = Path(cache_dir) if cache_dir else Path.home() / '.cache/exprdiff/id_mapping'
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.batch_size = batch_size

    def _cache_path(self, source_ids: List[str], source_type: str, target_type: str, species: str) -> Path:
        digest = hashlib.sha256(
            json.dumps([species, sorted(source_ids)]).encode('utf-8')
        ).hexdigest()[:16]
        return self.cache_dir / f"{source_type}_to_{target_type}_{digest}.json"

    def _query_batch(
        self,
        batch: List[str],
        source_field: str,
        target_field: str,
        species: str,
    ) -> Dict[str, str]:
        query_results = self.mg.querymany(
            batch,
            scopes=source_field,
            fields=target_field,
            species=species,
            returnall=True,
            verbose=False,
        )

        results = {}
        for item in query_results['out']:
            source_id = item.get('query')
            if source_id in results or item.get('notfound'):
                # first hit wins
                continue

            # Handle nested fields (e.g., ensembl.gene)
            target_value = item
            for field_part in target_field.split('.'):
                if isinstance(target_value, dict):
                    target_value = target_value.get(field_part)
                else:
                    break

            if isinstance(target_value, list):
                target_value = target_value[0] if target_value else None
            if isinstance(target_value, dict):
                target_value = None

            if target_value is not None and source_id:
                results[source_id] = str(target_value)

        return results

    def map_ids(
        self,
        source_ids: List[str],
        source_type: str = 'symbol',
        target_type: str = 'entrez',
        species: str = 'human',
    ) -> Dict[str, str]:
        """
        Map IDs using mygene.info batch queries

        Args:
            source_ids: List of source IDs to map
            source_type: Type of source IDs (key of MYGENE_FIELDS)
            target_type: Type to map to (key of MYGENE_FIELDS)
            species: Species to query (default: 'human')

        Returns:
            Dict mapping source_id → target_id (only successful mappings)
        """
        source_field = MYGENE_FIELDS.get(source_type)
        target_field = MYGENE_FIELDS.get(target_type)

        if not source_field or not target_field:
            raise ValueError(f"Unsupported ID type: {source_type} or {target_type}")

        source_ids = [str(s) for s in dict.fromkeys(source_ids)]
        if not source_ids:
            return {}

        cache_path = self._cache_path(source_ids, source_type, target_type, species)
        if cache_path.exists():
            try:
                with open(cache_path, 'r') as f:
                    cached = json.load(f)
                logger.debug(f"ID mapping cache hit: {cache_path.name}")
                return cached
            except (json.JSONDecodeError, ValueError) as e:
                logger.warning(f"Corrupted cache file {cache_path}, ignoring: {e}")

        batches = [source_ids[i:i + self.batch_size] for i in range(0, len(source_ids), self.batch_size)]
        logger.info(f"Starting ID mapping: {len(source_ids)} IDs in {len(batches)} batches")

        results = {}
        for i, batch in enumerate(batches):
            results.update(self._query_batch(batch, source_field, target_field, species))
            logger.debug(
                f"ID mapping progress: {i + 1}/{len(batches)} batches, "
                f"{len(results)}/{len(source_ids)} mapped"
            )

        logger.info(
            f"ID mapping complete: {len(results)}/{len(source_ids)} IDs mapped "
            f"({len(results) / len(source_ids) * 100:.1f}%)"
        )

        with open(cache_path, 'w') as f:
            json.dump(results, f, indent=2)

        return results


def map_identifiers(
    ids: Sequence[str] | pd.Index,
    mapper: IDMapper,
    source_type: str = 'symbol',
    target_type: str = 'entrez',
    species: str = 'human',
) -> pd.DataFrame:
    """
    Map identifiers and return one row per input.

    Unmapped entries keep a missing value in the target column; the number
    mapped is logged but not enforced.

    Returns:
        DataFrame with columns [source_type, target_type].
    """
    ids = [str(i) for i in ids]
    mapping = mapper.map_ids(ids, source_type=source_type, target_type=target_type, species=species) if ids else {}

    table = pd.DataFrame({
        source_type: ids,
        target_type: [mapping.get(i, np.nan) for i in ids],
    })

    n_mapped = int(table[target_type].notna().sum())
    if n_mapped < len(ids):
        logger.warning(f"{len(ids) - n_mapped}/{len(ids)} {source_type} IDs have no {target_type} mapping")
    else:
        logger.info(f"All {len(ids)} {source_type} IDs mapped to {target_type}")

    return table
