"""
Tests for GO annotation parsing and over-representation testing.

Uses a four-term ontology and a small gzipped GAF written to tmp_path.
"""

import gzip

import pytest
from scipy.stats import hypergeom

from exprdiff.validation.annotation_providers import GOAnnotationProvider
from exprdiff.validation.enrichment_tests import (
    ENRICHMENT_COLUMNS,
    HypergeometricTest,
    run_go_enrichment,
)

OBO = """format-version: 1.2

[Term]
id: GO:0000001
name: process one
namespace: biological_process

[Term]
id: GO:0000002
name: function two
namespace: molecular_function

[Term]
id: GO:0000003
name: process three
namespace: biological_process

[Typedef]
id: part_of
name: part of
namespace: external
"""


def _gaf_line(symbol, go_id, qualifier="", evidence="IDA"):
    fields = [
        "UniProtKB", f"P{symbol[1:]:0>5}", symbol, qualifier, go_id, "PMID:1", evidence,
        "", "P", f"{symbol} protein", "", "protein", "taxon:9606", "20240101", "UniProt",
    ]
    return "\t".join(fields) + "\n"


@pytest.fixture
def go_files(tmp_path):
    lines = ["!gaf-version: 2.2\n"]
    lines += [_gaf_line(f"G{i}", "GO:0000001") for i in range(1, 11)]
    lines += [_gaf_line(f"G{i}", "GO:0000002") for i in (1, 2)]
    lines += [_gaf_line(f"G{i}", "GO:0000003") for i in range(11, 40)]
    lines.append(_gaf_line("G40", "GO:0000003", evidence="IEA"))
    lines.append(_gaf_line("G21", "GO:0000001", qualifier="NOT|involved_in"))
    lines.append("too\tshort\n")

    gaf = tmp_path / "test.gaf.gz"
    with gzip.open(gaf, "wt") as f:
        f.writelines(lines)
    obo = tmp_path / "go.obo"
    obo.write_text(OBO)
    return gaf, obo


@pytest.fixture
def provider(go_files):
    gaf, obo = go_files
    return GOAnnotationProvider(annotation_file=gaf, obo_file=obo)


class TestGOAnnotationProvider:

    def test_term_names(self, provider):
        assert provider.get_term_name("GO:0000001") == "process one"
        assert provider.get_term_name("GO:9999999") == "GO:9999999"

    def test_annotations_by_namespace(self, provider):
        annotations = provider.get_annotations("G1")
        assert annotations["go_biological_process"] == {"GO:0000001"}
        assert annotations["go_molecular_function"] == {"GO:0000002"}
        assert annotations["go_cellular_component"] == set()

    def test_unknown_gene(self, provider):
        assert all(not terms for terms in provider.get_annotations("NOPE").values())

    def test_not_qualifier_skipped(self, provider):
        assert "G21" not in provider.get_genes_for_term("GO:0000001")
        assert len(provider.get_genes_for_term("GO:0000001")) == 10

    def test_terms_in_category(self, provider):
        assert provider.get_terms_in_category("biological_process") == {"GO:0000001", "GO:0000003"}
        assert provider.get_terms_in_category("go_molecular_function") == {"GO:0000002"}
        with pytest.raises(ValueError):
            provider.get_terms_in_category("pathways")

    def test_background(self, provider):
        assert provider.get_background_genes() == {f"G{i}" for i in range(1, 41)}

    def test_exclude_evidence(self, go_files):
        gaf, obo = go_files
        provider = GOAnnotationProvider(annotation_file=gaf, obo_file=obo, exclude_evidence={"IEA"})
        assert "G40" not in provider.get_background_genes()

    def test_uniprot_keys_plain_text(self, tmp_path, go_files):
        _, obo = go_files
        gaf = tmp_path / "plain.gaf"
        gaf.write_text(_gaf_line("G7", "GO:0000001"))
        provider = GOAnnotationProvider(annotation_file=gaf, obo_file=obo, id_type="uniprot")
        assert provider.get_genes_for_term("GO:0000001") == {"P00007"}

    def test_missing_file(self, tmp_path, go_files):
        _, obo = go_files
        with pytest.raises(FileNotFoundError):
            GOAnnotationProvider(annotation_file=tmp_path / "missing.gaf", obo_file=obo)

    def test_interrupted_download_not_cached(self, tmp_path, go_files, monkeypatch):
        _, obo = go_files

        def drop_connection(url, filename):
            with open(filename, "wb") as fh:
                fh.write(b"\x1f\x8b\x08")
            raise ConnectionResetError("connection reset")

        monkeypatch.setattr("urllib.request.urlretrieve", drop_connection)
        cache = tmp_path / "go_cache"
        with pytest.raises(ConnectionResetError):
            GOAnnotationProvider(obo_file=obo, cache_dir=cache)
        assert list(cache.iterdir()) == []

    def test_bad_id_type(self, go_files):
        gaf, obo = go_files
        with pytest.raises(ValueError, match="id_type"):
            GOAnnotationProvider(annotation_file=gaf, obo_file=obo, id_type="ensembl")


class TestHypergeometricTest:

    def test_matches_scipy(self):
        background = {f"g{i}" for i in range(100)}
        term = {f"g{i}" for i in range(10)}
        study = {f"g{i}" for i in range(5)} | {f"g{i}" for i in range(50, 55)}

        result = HypergeometricTest().test_enrichment(study, term, background)

        assert result.study_count == 5
        assert result.enrichment_ratio == pytest.approx(5.0)
        assert result.pvalue == pytest.approx(hypergeom.sf(4, 100, 10, 10))

    def test_genes_outside_background_ignored(self):
        background = {"a", "b", "c", "d"}
        result = HypergeometricTest().test_enrichment({"a", "x"}, {"a", "b", "y"}, background)
        assert result.study_size == 1
        assert result.term_size == 2

    def test_empty_study(self):
        result = HypergeometricTest().test_enrichment(set(), {"a"}, {"a", "b"})
        assert result.pvalue == 1.0
        assert result.study_count == 0


class TestRunGoEnrichment:

    def test_enriched_term(self, provider):
        table = run_go_enrichment({f"G{i}" for i in range(1, 6)}, provider, min_term_size=2)
        assert list(table.columns) == ENRICHMENT_COLUMNS
        # GO:0000003 has no study gene and is not tested
        assert list(table["term_id"]) == ["GO:0000001"]
        row = table.iloc[0]
        assert row["term_name"] == "process one"
        assert row["study_count"] == 5
        assert row["term_size"] == 10
        assert row["background_size"] == 40
        assert row["pvalue"] == pytest.approx(hypergeom.sf(4, 40, 10, 5))
        assert row["padj"] == pytest.approx(row["pvalue"])

    def test_background_restricts_universe(self, provider):
        background = [f"G{i}" for i in range(1, 16)] + ["UNANNOTATED"]
        table = run_go_enrichment({"G1", "G2", "G12"}, provider, background=background, min_term_size=2)
        assert set(table["background_size"]) == {15}
        assert set(table["term_id"]) == {"GO:0000001", "GO:0000003"}
        assert table["pvalue"].is_monotonic_increasing

    def test_molecular_function(self, provider):
        table = run_go_enrichment({"G1", "G2"}, provider, namespace="molecular_function", min_term_size=2)
        assert list(table["term_id"]) == ["GO:0000002"]

    def test_size_limits(self, provider):
        table = run_go_enrichment({"G1", "G2"}, provider, min_term_size=50)
        assert table.empty
        assert list(table.columns) == ENRICHMENT_COLUMNS
