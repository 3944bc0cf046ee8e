"""
Prediction Module
=================

Inference engine: scores records with a fitted pipeline.

Features:
    - Single-record and batch prediction through the training-time encoding
    - Sample forecasts for two known countries
    - Export of batch predictions to CSV

Predictions are returned in the label space the model was trained on;
conversion to sales units is left to reporting.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, List, Sequence, Tuple

import numpy as np
import pandas as pd

from .model import FittedPipeline
from .preprocessing import transform, transform_dataset
from .reporting import to_sales_value, print_header
from .schema import record_from_mapping

logger = logging.getLogger(__name__)

# Monthly statistics of two countries with the actual next-month label
# (log10 of sales) where it is known.
SAMPLE_RECORDS: List[Dict[str, Any]] = [
    {
        'record': {'unit_key': "United Kingdom", 'year': 2017, 'month': 10,
                   'median': 309.945, 'max': 587.902, 'min': 135.640,
                   'std': 1063.932092, 'prev': 856548.78, 'count': 1724,
                   'units_sold': 873612.9, 'avg': 0.0},
        'actual': 6.0084501,
    },
    {
        'record': {'unit_key': "United Kingdom", 'year': 2017, 'month': 11,
                   'median': 288.72, 'max': 501.488, 'min': 134.5360,
                   'std': 707.5642, 'prev': 873612.9, 'count': 2387,
                   'units_sold': 1019647.67, 'avg': 0.0},
        'actual': None,
    },
    {
        'record': {'unit_key': "United States", 'year': 2017, 'month': 10,
                   'median': 400.17, 'max': 573.63, 'min': 340.395,
                   'std': 340.3959, 'prev': 4264.94, 'count': 10,
                   'units_sold': 5322.56, 'avg': 0.0},
        'actual': 3.805769,
    },
    {
        'record': {'unit_key': "United States", 'year': 2017, 'month': 11,
                   'median': 317.9, 'max': 1135.99, 'min': 249.44,
                   'std': 409.75528, 'prev': 5322.56, 'count': 11,
                   'units_sold': 6393.96, 'avg': 0.0},
        'actual': None,
    },
]


def next_period(year: int, month: int) -> Tuple[int, int]:
    """Year and month that follow (year, month); December rolls into January."""
    year, month = int(year), int(month)
    return year + (month == 12), month % 12 + 1


def predict(pipeline: FittedPipeline, record: Any) -> float:
    """
    Predict the next-month label for one record.

    Args:
        pipeline: Fitted (or loaded) pipeline
        record: Record of the pipeline's schema

    Returns:
        Prediction in the model's label space
    """
    features = transform(record, pipeline.encoding).reshape(1, -1)
    return float(pipeline.model.predict(features)[0])


def predict_many(pipeline: FittedPipeline, records: Sequence[Any]) -> np.ndarray:
    """
    Predict the next-month label for a batch of records.

    Returns:
        Array of shape (n_records,)
    """
    if len(records) == 0:
        return np.empty(0, dtype=np.float64)
    return pipeline.model.predict(transform_dataset(records, pipeline.encoding))


def run_sample_predictions(pipeline: FittedPipeline) -> List[Dict[str, Any]]:
    """
    Score the built-in country samples and print the forecasts.

    Args:
        pipeline: Fitted country pipeline

    Returns:
        One result dictionary per sample
    """
    print_header("Testing Country Sales Forecast model")

    results = []
    for sample in SAMPLE_RECORDS:
        record = record_from_mapping(sample['record'], pipeline.schema)
        score = predict(pipeline, record)
        year, month = next_period(record.year, record.month)
        result = {
            'unit_key': record.unit_key,
            'year_to_predict': year,
            'month_to_predict': month,
            'prediction': score,
            'forecast': to_sales_value(score, pipeline.label_scale),
            'actual': sample['actual'],
            'actual_value': (
                to_sales_value(sample['actual'], pipeline.label_scale)
                if sample['actual'] is not None else None
            ),
        }
        results.append(result)

    print_prediction_results(results)
    return results


def export_predictions(
    pipeline: FittedPipeline,
    records: Sequence[Any],
    output_path: str,
    include_timestamp: bool = True
) -> str:
    """
    Score records and write them with their forecasts to CSV.

    Args:
        pipeline: Fitted pipeline
        records: Records to score
        output_path: Directory to save the file
        include_timestamp: Whether to add timestamp to filename

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.mkdir(parents=True, exist_ok=True)

    scores = predict_many(pipeline, records)
    key_field = pipeline.encoding.categorical_field
    periods = [next_period(r.year, r.month) for r in records]

    df = pd.DataFrame({
        key_field: [getattr(r, key_field) for r in records],
        'year_to_predict': [year for year, _ in periods],
        'month_to_predict': [month for _, month in periods],
        'prediction': scores,
        'forecast': [to_sales_value(s, pipeline.label_scale) for s in scores],
    })

    if include_timestamp:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"predictions_{pipeline.encoding.schema_name}_{timestamp}.csv"
    else:
        filename = f"predictions_{pipeline.encoding.schema_name}.csv"

    filepath = output_path / filename
    df.to_csv(filepath, index=False)

    logger.info(f"{len(df)} predictions exported to {filepath}")
    return str(filepath)


def print_prediction_results(results: Sequence[Dict[str, Any]]) -> None:
    """
    Print formatted forecasts to console.

    Args:
        results: Result dictionaries from run_sample_predictions
    """
    print(f"\n{'Unit':<18} {'Year':<6} {'Month':<6} {'Score':<10} {'Forecast':<16} {'Actual':<16}")
    print("-" * 76)

    for r in results:
        actual = f"{r['actual_value']:<16,.2f}" if r.get('actual_value') is not None else f"{'N/A':<16}"
        print(f"{r['unit_key']:<18} {r['year_to_predict']:<6} {r['month_to_predict']:<6} "
              f"{r['prediction']:<10.6f} {r['forecast']:<16,.2f} {actual}")

    print("-" * 76 + "\n")
