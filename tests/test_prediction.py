"""
Test Suite for the Inference Engine
===================================
"""

import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

import pandas as pd
import pytest
import numpy as np

from sales_forecasting.model import fit_pipeline
from sales_forecasting.prediction import (
    predict, predict_many, run_sample_predictions, export_predictions, next_period, SAMPLE_RECORDS
)
from sales_forecasting.reporting import to_sales_value


@pytest.fixture
def pipeline(country_records, small_hyperparameters):
    return fit_pipeline(country_records, hyperparameters=small_hyperparameters)


class TestPredict:
    """Tests for single and batch prediction."""

    def test_returns_float(self, pipeline, country_records):
        value = predict(pipeline, country_records[0])

        assert isinstance(value, float)
        assert value > 0

    def test_matches_batch(self, pipeline, country_records):
        batch = predict_many(pipeline, country_records[:5])
        single = [predict(pipeline, r) for r in country_records[:5]]

        np.testing.assert_allclose(batch, single)

    def test_unlabelled_record(self, pipeline, country_records):
        record = replace(country_records[0], label_next=None)

        assert predict(pipeline, record) == predict(pipeline, country_records[0])

    def test_unseen_country(self, pipeline, country_records):
        record = replace(country_records[0], unit_key="FR")

        value = predict(pipeline, record)

        assert math.isfinite(value)

    def test_empty_batch(self, pipeline):
        assert predict_many(pipeline, []).shape == (0,)

    def test_concurrent_predictions(self, pipeline, country_records):
        expected = [predict(pipeline, r) for r in country_records]

        with ThreadPoolExecutor(max_workers=4) as executor:
            results = list(executor.map(lambda r: predict(pipeline, r), country_records))

        assert results == expected

    def test_pipeline_unchanged_by_predict(self, pipeline, country_records):
        encoding = pipeline.encoding

        predict(pipeline, replace(country_records[0], unit_key="FR"))

        assert pipeline.encoding is encoding
        assert "FR" not in pipeline.encoding.vocabulary


class TestSamplePredictions:
    """Tests for the built-in country samples."""

    def test_samples(self, large_country_records, small_hyperparameters, capsys):
        pipeline = fit_pipeline(large_country_records, hyperparameters=small_hyperparameters)

        results = run_sample_predictions(pipeline)

        assert len(results) == len(SAMPLE_RECORDS)
        assert [r['unit_key'] for r in results] == [
            "United Kingdom", "United Kingdom", "United States", "United States"
        ]
        assert (results[0]['year_to_predict'], results[0]['month_to_predict']) == (2017, 11)
        assert results[0]['forecast'] == pytest.approx(10 ** results[0]['prediction'])
        assert results[0]['actual_value'] == pytest.approx(10 ** 6.0084501)
        assert results[1]['actual_value'] is None
        assert "United Kingdom" in capsys.readouterr().out


class TestExportPredictions:
    """Tests for CSV export."""

    def test_export(self, tmp_path, pipeline, country_records):
        path = export_predictions(pipeline, country_records, str(tmp_path), include_timestamp=False)

        df = pd.read_csv(path)

        assert path.endswith("predictions_country.csv")
        assert len(df) == len(country_records)
        assert list(df.columns) == [
            'unit_key', 'year_to_predict', 'month_to_predict', 'prediction', 'forecast'
        ]
        np.testing.assert_allclose(df['prediction'], predict_many(pipeline, country_records))

    def test_december_rolls_into_next_year(self, tmp_path, pipeline, country_records):
        december = replace(country_records[0], year=2016.0, month=12.0)
        november = replace(country_records[0], year=2016.0, month=11.0)

        path = export_predictions(pipeline, [december, november], str(tmp_path), include_timestamp=False)
        df = pd.read_csv(path)

        assert list(zip(df['year_to_predict'], df['month_to_predict'])) == [(2017, 1), (2016, 12)]


class TestNextPeriod:
    """Tests for the forecast month arithmetic."""

    @pytest.mark.parametrize('year, month, expected', [
        (2016, 1, (2016, 2)),
        (2016, 11, (2016, 12)),
        (2016, 12, (2017, 1)),
        (2017.0, 12.0, (2018, 1)),
    ])
    def test_next_period(self, year, month, expected):
        assert next_period(year, month) == expected


class TestReporting:
    """Tests for label-scale conversion."""

    def test_log10(self):
        assert to_sales_value(6.0) == pytest.approx(1_000_000.0)

    def test_identity(self):
        assert to_sales_value(42.5, 'identity') == 42.5

    def test_unknown_scale(self):
        with pytest.raises(ValueError, match="Unknown label scale"):
            to_sales_value(1.0, 'log2')
