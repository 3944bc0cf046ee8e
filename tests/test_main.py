"""
Test Suite for the Pipeline Entry Points
========================================
"""

import logging
import sys

import pytest
import yaml

import main
from sales_forecasting import model_store
from sales_forecasting.exceptions import IngestionError

from conftest import records_to_frame


@pytest.fixture
def config(tmp_path):
    return {
        'schema': 'country',
        'seed': 2,
        'label_scale': 'log10',
        'model': {'max_iter': 20, 'max_leaf_nodes': 8, 'min_samples_leaf': 5},
        'cross_validation': {'folds': 4, 'n_jobs': 1},
        'output': {'reports_path': str(tmp_path / "reports"), 'save_figures': False},
        'data': {'predictions_path': str(tmp_path / "predictions")},
    }


class TestTrainAndSaveModel:
    """End-to-end: CSV -> cross-validation -> fit -> artifact."""

    def test_train_and_save(self, tmp_path, country_csv, config):
        model_path = tmp_path / "models" / "country_sales_ml_model.joblib"

        result = main.train_and_save_model(str(country_csv), str(model_path), config)

        assert model_path.exists()
        assert len(result['cross_validation']['folds']) == 4
        assert (tmp_path / "reports" / "metrics" / "cross_validation_metrics.json").exists()

        loaded = model_store.load(str(model_path))
        assert loaded.encoding == result['pipeline'].encoding
        assert loaded.model.training_info['n_samples'] == 48

    def test_product_schema(self, tmp_path, product_csv, config):
        config['schema'] = 'product'
        model_path = tmp_path / "product_sales_ml_model.joblib"

        result = main.train_and_save_model(str(product_csv), str(model_path), config)

        assert result['pipeline'].encoding.schema_name == 'product'

    def test_bad_data(self, tmp_path, config):
        path = tmp_path / "bad.csv"
        path.write_text("a,b\n1,2\n")

        with pytest.raises(IngestionError):
            main.train_and_save_model(str(path), str(tmp_path / "m.joblib"), config)


class TestPrediction:
    """Load a saved model and forecast."""

    def test_samples_and_export(self, tmp_path, country_csv, country_records, config):
        model_path = str(tmp_path / "model.joblib")
        main.train_and_save_model(str(country_csv), model_path, config)

        predict_path = tmp_path / "new_months.csv"
        records_to_frame(country_records[:3], include_label=False).to_csv(predict_path, index=False)

        result = main.test_prediction(model_path, str(predict_path), config)

        assert len(result['samples']) == 4
        assert result['csv_path'].startswith(str(tmp_path / "predictions"))

    def test_missing_model(self, tmp_path):
        with pytest.raises(model_store.ArtifactNotFound):
            main.test_prediction(str(tmp_path / "missing.joblib"))


class TestMain:
    """CLI behaviour."""

    @pytest.fixture(autouse=True)
    def _isolate(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(main, "setup_logging", lambda level: None)

    def test_full_run(self, tmp_path, country_csv, config, monkeypatch):
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.safe_dump(config))
        model_path = tmp_path / "cli_model.joblib"
        monkeypatch.setattr(sys, "argv", [
            "main.py", "--data", str(country_csv), "--config", str(config_path),
            "--model", str(model_path)
        ])

        assert main.main() == 0
        assert model_path.exists()

    def test_missing_model_returns_error(self, tmp_path, config, monkeypatch, caplog):
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.safe_dump(config))
        monkeypatch.setattr(sys, "argv", [
            "main.py", "--phase", "predict", "--config", str(config_path),
            "--model", str(tmp_path / "missing.joblib")
        ])

        with caplog.at_level(logging.ERROR):
            assert main.main() == 1
        assert "Pipeline failed" in caplog.text

    def test_missing_data_exits(self, tmp_path, config, monkeypatch):
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.safe_dump(config))
        monkeypatch.setattr(sys, "argv", [
            "main.py", "--data", str(tmp_path / "nope.csv"), "--config", str(config_path)
        ])

        with pytest.raises(SystemExit):
            main.main()
