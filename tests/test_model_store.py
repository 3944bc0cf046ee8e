"""
Test Suite for the Model Store
==============================
"""

import joblib
import pytest
import numpy as np

from sales_forecasting import model_store
from sales_forecasting.exceptions import ArtifactNotFound, ArtifactCorrupt
from sales_forecasting.model import fit_pipeline
from sales_forecasting.prediction import predict, predict_many
from sales_forecasting.schema import PRODUCT_SCHEMA


@pytest.fixture
def pipeline(country_records, small_hyperparameters):
    return fit_pipeline(country_records, hyperparameters=small_hyperparameters)


class TestRoundTrip:
    """Tests for save/load behaviour."""

    def test_same_predictions(self, tmp_path, pipeline, country_records):
        path = tmp_path / "country_sales_ml_model.joblib"

        model_store.save(pipeline, str(path))
        loaded = model_store.load(str(path))

        assert loaded.encoding == pipeline.encoding
        assert loaded.label_scale == pipeline.label_scale
        assert loaded.model.hyperparameters == pipeline.model.hyperparameters
        np.testing.assert_array_equal(
            predict_many(loaded, country_records),
            predict_many(pipeline, country_records)
        )
        assert predict(loaded, country_records[0]) == predict(pipeline, country_records[0])

    def test_creates_parent_directories(self, tmp_path, pipeline):
        path = tmp_path / "models" / "nested" / "model.joblib"

        assert model_store.save(pipeline, str(path)) == str(path)
        assert path.exists()

    def test_no_temp_files_left(self, tmp_path, pipeline):
        model_store.save(pipeline, str(tmp_path / "model.joblib"))

        assert [p.name for p in tmp_path.iterdir()] == ["model.joblib"]

    def test_product_pipeline(self, tmp_path, product_records, small_hyperparameters):
        product = fit_pipeline(product_records, schema=PRODUCT_SCHEMA,
                               hyperparameters=small_hyperparameters)
        path = tmp_path / "product.joblib"

        model_store.save(product, str(path))
        loaded = model_store.load(str(path))

        assert loaded.encoding.schema_name == "product"
        np.testing.assert_array_equal(
            predict_many(loaded, product_records),
            predict_many(product, product_records)
        )


class TestOverwrite:
    """Saving to an existing path replaces the artifact."""

    def test_second_save_wins(self, tmp_path, country_records, large_country_records,
                              small_hyperparameters):
        path = str(tmp_path / "model.joblib")
        first = fit_pipeline(country_records, hyperparameters=small_hyperparameters)
        second = fit_pipeline(large_country_records, hyperparameters=small_hyperparameters)

        model_store.save(first, path)
        model_store.save(second, path)
        loaded = model_store.load(path)

        assert loaded.encoding.vocabulary == second.encoding.vocabulary
        np.testing.assert_array_equal(
            predict_many(loaded, large_country_records),
            predict_many(second, large_country_records)
        )

    def test_overwrites_unrelated_file(self, tmp_path, pipeline):
        path = tmp_path / "model.joblib"
        path.write_text("stale")

        model_store.save(pipeline, str(path))

        assert model_store.load(str(path)).encoding == pipeline.encoding


class TestLoadErrors:
    """Tests for load failures."""

    def test_missing_path(self, tmp_path):
        with pytest.raises(ArtifactNotFound):
            model_store.load(str(tmp_path / "missing.joblib"))

    def test_missing_path_is_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            model_store.load(str(tmp_path / "missing.joblib"))

    def test_garbage_file(self, tmp_path):
        path = tmp_path / "garbage.joblib"
        path.write_bytes(b"this is not a model")

        with pytest.raises(ArtifactCorrupt):
            model_store.load(str(path))

    def test_wrong_structure(self, tmp_path):
        path = tmp_path / "list.joblib"
        joblib.dump([1, 2, 3], path)

        with pytest.raises(ArtifactCorrupt, match="pipeline state"):
            model_store.load(str(path))

    def test_missing_keys(self, tmp_path):
        path = tmp_path / "partial.joblib"
        joblib.dump({'format_version': model_store.FORMAT_VERSION}, path)

        with pytest.raises(ArtifactCorrupt, match="missing keys"):
            model_store.load(str(path))

    @pytest.mark.parametrize("key,value,message", [
        ('format_version', 99, "format version"),
        ('schema_name', 'region', "unknown schema"),
        ('numeric_fields', ['month', 'year'], "numeric field order"),
        ('vocabulary', ['UK'], "expects 11 features"),
        ('estimator', object(), "expected a fitted"),
    ])
    def test_schema_mismatch(self, tmp_path, pipeline, key, value, message):
        path = tmp_path / "model.joblib"
        model_store.save(pipeline, str(path))
        state = joblib.load(path)
        state[key] = value
        joblib.dump(state, path)

        with pytest.raises(ArtifactCorrupt, match=message):
            model_store.load(str(path))
