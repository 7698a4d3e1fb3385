"""
End-to-end tests of the microarray and counts pipelines.

No network: the microarray pipeline gets a fake GEO series, the counts
pipeline a dictionary identifier mapper and an in-memory GO provider.
"""

import json

import numpy as np
import pandas as pd
import pytest

from exprdiff.pipelines.counts import OUTPUT_NAMES, CountsConfig, run_counts_pipeline
from exprdiff.pipelines.microarray import MicroarrayConfig, run_microarray_pipeline, safe_filename
from exprdiff.validation.annotation_providers import AnnotationProvider

from conftest import DictMapper, generate_counts


class DictGOProvider(AnnotationProvider):
    """GO-like provider over a fixed term -> genes mapping."""

    def __init__(self, terms):
        self.terms = {t: set(genes) for t, genes in terms.items()}

    def get_annotations(self, gene_id):
        return {'go_biological_process': {t for t, g in self.terms.items() if gene_id in g}}

    def get_term_name(self, term_id):
        return f"term {term_id}"

    def get_genes_for_term(self, term_id):
        return self.terms.get(term_id, set())

    def get_all_terms(self):
        return set(self.terms)


class TestMicroarrayPipeline:

    @pytest.fixture
    def result(self, fake_gse, tmp_path):
        config = MicroarrayConfig(accession="GSE999", output_dir=tmp_path)
        return run_microarray_pipeline(config, gse=fake_gse)

    def test_output_files(self, result, tmp_path):
        names = {p.name for p in result.output_files.values()}
        assert names == {
            "metadata.xlsx",
            "counts_table_GSE999.xlsx",
            "Limma_output_tumor-normal_GSE999.xlsx",
        }
        assert (tmp_path / "run_config.json").exists()

    def test_only_first_platform(self, result):
        assert result.dataset.platform == "GPL1"
        assert result.log_matrix.shape == (120, 8)

    def test_log_scale_and_zero_fill(self, result):
        frame = result.log_matrix.to_frame()
        assert (frame.loc["PZERO"] == 0.0).all()
        assert frame.drop(index="PZERO").mean().mean() == pytest.approx(8.0, abs=0.6)

    def test_group_column(self, result):
        groups = result.log_matrix.sample_metadata
        assert list(groups.columns) == ["group"]
        assert list(groups["group"]) == ["tumor"] * 4 + ["normal"] * 4

    def test_ranked_table(self, result):
        table = result.table
        assert len(table) == 120
        assert table["P.Value"].is_monotonic_increasing
        assert set(table.index[:10]) == {f"{i}_at" for i in range(10)}
        assert table["logFC"].iloc[:10].between(2.0, 4.0).all()
        assert table.loc["PZERO", "P.Value"] == pytest.approx(1.0)

    def test_table_carries_annotation(self, result):
        assert result.table.columns[0] == "Gene Symbol"
        assert result.table.loc["3_at", "Gene Symbol"] == "SYM3"

    def test_exported_table(self, result):
        path = result.output_files["table"]
        back = pd.read_excel(path, index_col=0, engine="openpyxl")
        assert len(back) == 120
        assert list(back.index[:3]) == list(result.table.index[:3])

    def test_exported_metadata(self, result):
        back = pd.read_excel(result.output_files["metadata"], engine="openpyxl")
        assert list(back.columns) == ["sample_id", "group"]
        assert len(back) == 8

    def test_manifest(self, result, tmp_path):
        manifest = json.loads((tmp_path / "run_config.json").read_text())
        assert manifest["pipeline"] == "microarray"
        assert manifest["platform"] == "GPL1"
        assert manifest["group_sizes"] == {"tumor": 4, "normal": 4}
        assert manifest["transforms"][0]["name"] == "Log2Transform"

    def test_manifest_infinite_prior(self, fake_gse, tmp_path, monkeypatch):
        monkeypatch.setattr(
            "exprdiff.stats.linear_model.fit_f_dist", lambda sigma2, df: (np.inf, 0.5)
        )
        run_microarray_pipeline(MicroarrayConfig(accession="GSE999", output_dir=tmp_path), gse=fake_gse)
        text = (tmp_path / "run_config.json").read_text()
        assert "Infinity" not in text
        manifest = json.loads(text)
        assert manifest["df_prior"] is None
        assert manifest["s2_prior"] == 0.5

    def test_reversed_contrast(self, fake_gse, tmp_path):
        config = MicroarrayConfig(
            accession="GSE999",
            output_dir=tmp_path,
            contrast=["normal", "tumor"],
            write_correlation=True,
            annotation_columns=["Gene Symbol"],
        )
        result = run_microarray_pipeline(config, gse=fake_gse)
        assert result.output_files["table"].name == "Limma_output_normal-tumor_GSE999.xlsx"
        assert (result.table["logFC"].iloc[:10] < 0).all()
        assert result.output_files["correlation"].exists()
        assert result.correlation.shape == (8, 8)

    def test_missing_condition_column(self, fake_gse, tmp_path):
        config = MicroarrayConfig(output_dir=tmp_path, condition_column="characteristics_ch1")
        with pytest.raises(KeyError, match="characteristics_ch1"):
            run_microarray_pipeline(config, gse=fake_gse)

    def test_unknown_annotation_column(self, fake_gse, tmp_path):
        config = MicroarrayConfig(output_dir=tmp_path, annotation_columns=["ENTREZ_GENE_ID"])
        with pytest.raises(KeyError, match="ENTREZ_GENE_ID"):
            run_microarray_pipeline(config, gse=fake_gse)

    def test_bad_contrast_length(self):
        with pytest.raises(ValueError, match="contrast"):
            MicroarrayConfig(contrast=["tumor"])


def test_safe_filename():
    assert safe_filename("tumor tissue-normal/adjacent") == "tumor_tissue-normal_adjacent"


class TestCountsConfig:

    def test_defaults(self):
        config = CountsConfig()
        assert config.groups == [("career", 12), ("normal", 3)]
        assert config.reference == "normal"
        assert config.output_dir.name == "DEG_results"

    def test_group_forms(self):
        assert CountsConfig(groups=["a:2", "b:3"]).groups == [("a", 2), ("b", 3)]
        assert CountsConfig(groups={"a": 2, "b": 3}).groups == [("a", 2), ("b", 3)]
        assert CountsConfig(groups=[["a", "2"], ["b", 3]]).groups == [("a", 2), ("b", 3)]

    def test_sheet_name_digit(self):
        assert CountsConfig(sheet_name="1").sheet_name == 1
        assert CountsConfig(sheet_name="counts").sheet_name == "counts"

    @pytest.mark.parametrize("kwargs", [{"alpha": 0}, {"alpha": 1.5}, {"lfc_threshold": -0.5}])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            CountsConfig(**kwargs)

    def test_input_required(self, tmp_path):
        with pytest.raises(ValueError, match="input"):
            run_counts_pipeline(CountsConfig(output_dir=tmp_path))


class TestCountsPipeline:

    @pytest.fixture(scope="class")
    def run(self, tmp_path_factory):
        root = tmp_path_factory.mktemp("counts")
        counts = generate_counts()
        input_path = root / "RNAseq_Atl_career.xlsx"
        counts.to_excel(input_path, engine="openpyxl")

        mapping = {g: str(10000 + i) for i, g in enumerate(counts.index)}
        del mapping["GENE0000"], mapping["GENE0025"]
        mapper = DictMapper(mapping)

        provider = DictGOProvider({
            "GO:UP": [f"GENE{i:04d}" for i in range(20)] + [f"GENE{i:04d}" for i in range(100, 110)],
            "GO:NULL": [f"GENE{i:04d}" for i in range(200, 230)],
        })

        config = CountsConfig(
            input=input_path,
            output_dir=root / "DEG_results",
            enrichment=True,
            min_term_size=5,
        )
        result = run_counts_pipeline(config, mapper=mapper, go_provider=provider)
        return result, config, mapper

    def test_all_outputs_written(self, run):
        result, config, _ = run
        assert set(result.output_files) == set(OUTPUT_NAMES)
        for key, path in result.output_files.items():
            assert path == config.output_dir / OUTPUT_NAMES[key]
            assert path.exists()
        assert (config.output_dir / "run_config.json").exists()

    def test_row_counts_match_split(self, run):
        result, _, _ = run
        split = result.split
        for key, frame in [("ranked", split.ranked), ("significant", split.significant),
                           ("up", split.up), ("down", split.down)]:
            back = pd.read_excel(result.output_files[key], index_col=0, engine="openpyxl")
            assert len(back) == len(frame)
        assert len(split.ranked) == 300
        assert len(split.up) + len(split.down) <= len(split.significant)

    def test_ranked_by_padj(self, run):
        result, _, _ = run
        padj = result.split.ranked["padj"].dropna()
        assert padj.is_monotonic_increasing

    def test_up_down_sets(self, run):
        result, _, _ = run
        assert result.split.up["log2FoldChange"].gt(1).all()
        assert result.split.down["log2FoldChange"].lt(-1).all()
        assert result.split.significant["padj"].lt(0.05).all()
        assert "GENE0003" in result.split.up.index
        assert "GENE0030" in result.split.down.index

    def test_entrez_tables(self, run):
        result, _, mapper = run
        up = result.entrez_up.set_index("symbol")
        assert list(result.entrez_up["symbol"]) == list(result.split.up.index)
        assert up.loc["GENE0003", "entrez"] == "10003"
        if "GENE0000" in up.index:
            assert pd.isna(up.loc["GENE0000", "entrez"])
        assert len(mapper.calls) == 2
        assert all(call[1:] == ("symbol", "entrez", "human") for call in mapper.calls)

    def test_exported_entrez_has_no_index(self, run):
        result, _, _ = run
        back = pd.read_excel(result.output_files["entrez_down"], engine="openpyxl")
        assert list(back.columns) == ["symbol", "entrez"]
        assert len(back) == len(result.split.down)

    def test_enrichment(self, run):
        result, _, _ = run
        up = result.enrichment_up
        assert up.iloc[0]["term_id"] == "GO:UP"
        assert up.iloc[0]["pvalue"] < 1e-4
        assert "GO:NULL" not in set(result.enrichment_down["term_id"])

    def test_manifest(self, run):
        result, config, _ = run
        manifest = json.loads((config.output_dir / "run_config.json").read_text())
        assert manifest["pipeline"] == "counts"
        assert manifest["summary"] == result.split.summary()
        assert manifest["contrast"] == ["condition", "career", "normal"]
        assert manifest["config"]["groups"] == [["career", 12], ["normal", 3]]
        assert np.isclose(sum(manifest["size_factors"].values()), result.model.size_factors.sum(), atol=1e-4)
