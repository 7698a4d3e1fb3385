"""
Pytest configuration and shared fixtures.

Provides synthetic microarray and count data, fake GEOparse records and a
fake identifier mapper so no test touches the network.
"""

import numpy as np
import pandas as pd
import pytest

from exprdiff.core.biomatrix import BioMatrix
from exprdiff.validation.id_mapping import IDMapper


def generate_group_expression(
    n_genes: int = 200,
    group_sizes: tuple = (4, 4),
    n_shifted: int = 20,
    shift: float = 2.0,
    seed: int = 42,
) -> tuple:
    """
    Log2-scale expression with a mean shift in the first group.

    Returns:
        (data, groups) where data is (n_genes, n_samples) and the first
        `n_shifted` genes are `shift` higher in group A.
    """
    rng = np.random.default_rng(seed)
    n_a, n_b = group_sizes
    gene_means = rng.uniform(6, 12, size=(n_genes, 1))
    gene_sd = rng.uniform(0.2, 0.6, size=(n_genes, 1))
    data = gene_means + gene_sd * rng.standard_normal((n_genes, n_a + n_b))
    data[:n_shifted, :n_a] += shift
    groups = np.array(["A"] * n_a + ["B"] * n_b)
    return data, groups


def generate_counts(
    n_genes: int = 300,
    n_career: int = 12,
    n_normal: int = 3,
    n_up: int = 25,
    n_down: int = 25,
    fold: float = 8.0,
    seed: int = 7,
) -> pd.DataFrame:
    """
    Negative-binomial counts, genes x samples, career block first.

    Genes GENE0000..GENE{n_up-1} are `fold` times higher in career; the
    next `n_down` genes are `fold` times lower.
    """
    rng = np.random.default_rng(seed)
    n_samples = n_career + n_normal
    base = rng.uniform(100, 1000, size=n_genes)
    dispersion = 0.05

    means = np.tile(base[:, None], (1, n_samples))
    means[:n_up, :n_career] *= fold
    means[n_up:n_up + n_down, :n_career] /= fold

    # NB via gamma-Poisson mixture
    shape = 1.0 / dispersion
    lam = rng.gamma(shape, means / shape)
    counts = rng.poisson(lam)

    genes = [f"GENE{i:04d}" for i in range(n_genes)]
    samples = [f"career_{i + 1}" for i in range(n_career)] + [f"normal_{i + 1}" for i in range(n_normal)]
    return pd.DataFrame(counts, index=genes, columns=samples)


@pytest.fixture
def group_expression():
    return generate_group_expression()


@pytest.fixture
def raw_intensity_matrix():
    """Small raw-intensity BioMatrix with a zero, a negative value and a NaN."""
    data = np.array([
        [1.0, 2.0, 4.0, 8.0],
        [0.0, 16.0, 32.0, 64.0],
        [-1.0, 1.0, np.nan, 2.0],
    ])
    samples = pd.Index(["S1", "S2", "S3", "S4"])
    return BioMatrix(
        data=data,
        feature_ids=pd.Index(["p1", "p2", "p3"]),
        sample_ids=samples,
        sample_metadata=pd.DataFrame({"group": ["A", "A", "B", "B"]}, index=samples),
    )


@pytest.fixture
def count_table():
    return generate_counts()


# ── GEOparse fakes ──────────────────────────────────────────────────────


class FakeGSM:
    def __init__(self, name, platform, table):
        self.name = name
        self.metadata = {"platform_id": [platform]}
        self.table = table


class FakeGPL:
    def __init__(self, name, table):
        self.name = name
        self.table = table


class FakeGSE:
    def __init__(self, name, gsms, gpls, phenotype_data):
        self.name = name
        self.gsms = gsms
        self.gpls = gpls
        self.phenotype_data = phenotype_data


def make_fake_gse(n_probes: int = 120, seed: int = 3) -> FakeGSE:
    """
    Two-platform series: 8 samples on GPL1 (4 tumor, 4 normal), 2 on GPL2.

    Intensities are on the raw scale; probes 0-9 are 8x higher in tumor.
    Probe 'PZERO' is 0 in every sample.
    """
    rng = np.random.default_rng(seed)
    probes = [f"{i}_at" for i in range(n_probes - 1)] + ["PZERO"]
    conditions = ["tumor"] * 4 + ["normal"] * 4

    gsms = {}
    for j, condition in enumerate(conditions):
        values = 2 ** rng.normal(8, 0.3, size=n_probes)
        if condition == "tumor":
            values[:10] *= 8
        values[-1] = 0.0
        gsms[f"GSM{100 + j}"] = FakeGSM(
            f"GSM{100 + j}", "GPL1", pd.DataFrame({"ID_REF": probes, "VALUE": values})
        )
    for j in range(2):
        gsms[f"GSM{200 + j}"] = FakeGSM(
            f"GSM{200 + j}", "GPL2", pd.DataFrame({"ID_REF": ["x"], "VALUE": [1.0]})
        )

    gpls = {
        "GPL1": FakeGPL("GPL1", pd.DataFrame({
            "ID": probes,
            "Gene Symbol": [f"SYM{i}" for i in range(n_probes)],
        })),
        "GPL2": FakeGPL("GPL2", pd.DataFrame({"ID": ["x"], "Gene Symbol": ["X"]})),
    }

    phenotype_data = pd.DataFrame(
        {
            "title": list(gsms),
            "source_name_ch1": conditions + ["other", "other"],
            "platform_id": ["GPL1"] * 8 + ["GPL2"] * 2,
        },
        index=list(gsms),
    )
    return FakeGSE("GSE999", gsms, gpls, phenotype_data)


@pytest.fixture
def fake_gse():
    return make_fake_gse()


# ── Identifier mapping fake ─────────────────────────────────────────────


class DictMapper(IDMapper):
    """Maps from a fixed dictionary and records every call."""

    def __init__(self, mapping):
        self.mapping = mapping
        self.calls = []

    def map_ids(self, source_ids, source_type='symbol', target_type='entrez', species='human'):
        self.calls.append((list(source_ids), source_type, target_type, species))
        return {s: self.mapping[s] for s in source_ids if s in self.mapping}


@pytest.fixture
def gene_mapper():
    """Maps every synthetic gene except GENE0000 and GENE0025."""
    mapping = {f"GENE{i:04d}": str(10000 + i) for i in range(300)}
    del mapping["GENE0000"]
    del mapping["GENE0025"]
    return DictMapper(mapping)
