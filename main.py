#!/usr/bin/env python3
"""
Monthly Sales Forecasting - Main Pipeline
=========================================

Trains and exercises the next-month sales forecasting model.

Phases:
    1. Train - Load data, cross-validate, fit on all rows, save the model
    2. Predict - Load the saved model and forecast sample or file records

Usage:
    # Train and test with the defaults from config/config.yaml
    python main.py --data Data/country.stats.csv

    # Train the product-level model
    python main.py --data Data/product.stats.csv --schema product --model models/product_sales_ml_model.joblib

    # Forecast every row of a file with an existing model
    python main.py --phase predict --predict-data data/new_months.csv
"""

import argparse
import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, Optional

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from sales_forecasting import model_store
from sales_forecasting.data_loader import load_config, load_data, load_records, print_data_summary
from sales_forecasting.evaluation import evaluate_cross_validation, print_cross_validation_report
from sales_forecasting.exceptions import SalesForecastError
from sales_forecasting.model import fit_pipeline, hyperparameters_from_config, print_model_summary, DEFAULT_SEED
from sales_forecasting.prediction import run_sample_predictions, export_predictions
from sales_forecasting.preprocessing import print_encoding_summary
from sales_forecasting.reporting import print_header, print_exception
from sales_forecasting.schema import get_schema


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the pipeline."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(f'pipeline_{datetime.now().strftime("%Y%m%d_%H%M%S")}.log')
        ]
    )


def train_and_save_model(
    data_path: str,
    output_model_path: str = model_store.DEFAULT_MODEL_PATH,
    config: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Cross-validate, fit on the full dataset and save the model.

    Args:
        data_path: Path to the monthly statistics CSV
        output_model_path: Artifact path (replaced if it exists)
        config: Configuration dictionary

    Returns:
        Dictionary with the cross-validation result, pipeline and model path
    """
    config = config or {}
    schema = get_schema(config.get('schema', 'country'))
    seed = config.get('seed', DEFAULT_SEED)
    label_scale = config.get('label_scale', 'log10')
    hyperparameters = hyperparameters_from_config(config)
    cv_config = config.get('cross_validation', {})
    output_config = config.get('output', {})

    print_header(f"Training {schema.name} forecasting model")

    print_data_summary(load_data(data_path, schema=schema), schema=schema)
    records = load_records(data_path, schema=schema)

    print("=============== Cross-validating to get model's accuracy metrics ===============")
    evaluation = evaluate_cross_validation(
        records,
        k=cv_config.get('folds', 6),
        schema=schema,
        seed=seed,
        hyperparameters=hyperparameters,
        n_jobs=cv_config.get('n_jobs', 1),
        output_dir=output_config.get('reports_path', 'reports/'),
        save_figures=output_config.get('save_figures', True)
    )
    print_cross_validation_report(
        evaluation['cross_validation'], model_name="HistGradientBoostingRegressor(poisson)"
    )

    pipeline = fit_pipeline(
        records, schema=schema, seed=seed,
        hyperparameters=hyperparameters, label_scale=label_scale
    )
    print_encoding_summary(pipeline.encoding)
    print_model_summary(pipeline)

    model_path = model_store.save(pipeline, output_model_path)

    return {
        'cross_validation': evaluation['cross_validation'],
        'pipeline': pipeline,
        'model_path': model_path
    }


def test_prediction(
    output_model_path: str = model_store.DEFAULT_MODEL_PATH,
    predict_data_path: Optional[str] = None,
    config: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Load the saved model and forecast with it.

    Country models score the built-in samples. When ``predict_data_path`` is
    given, every row of that file is scored and exported to CSV.

    Args:
        output_model_path: Artifact path
        predict_data_path: Optional CSV of records to score
        config: Configuration dictionary

    Returns:
        Dictionary with sample results and the export path, if any
    """
    config = config or {}
    pipeline = model_store.load(output_model_path)

    result = {'samples': None, 'csv_path': None}

    if pipeline.encoding.schema_name == 'country':
        result['samples'] = run_sample_predictions(pipeline)

    if predict_data_path:
        records = load_records(predict_data_path, schema=pipeline.schema, require_label=False)
        output_dir = config.get('data', {}).get('predictions_path', 'data/predictions/')
        result['csv_path'] = export_predictions(pipeline, records, output_dir)
        print(f"Predictions exported to: {result['csv_path']}")

    return result


def main():
    """Main entry point with argument parsing."""
    parser = argparse.ArgumentParser(
        description="Next-month sales forecasting from monthly aggregate statistics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --data Data/country.stats.csv
  python main.py --data Data/product.stats.csv --schema product
  python main.py --phase predict --predict-data data/new_months.csv
        """
    )

    parser.add_argument(
        '--data', '-d',
        type=str,
        default=None,
        help='Path to the training CSV file (default: data.path from config)'
    )

    parser.add_argument(
        '--model', '-m',
        type=str,
        default=None,
        help='Path of the model artifact (default: output.model_path from config)'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default='config/config.yaml',
        help='Path to configuration file (default: config/config.yaml)'
    )

    parser.add_argument(
        '--schema', '-s',
        type=str,
        choices=['country', 'product'],
        default=None,
        help='Record schema of the data file (default: schema from config)'
    )

    parser.add_argument(
        '--phase', '-p',
        type=str,
        choices=['train', 'predict', 'all'],
        default='all',
        help='Phase to run (default: all)'
    )

    parser.add_argument(
        '--predict-data',
        type=str,
        default=None,
        help='CSV of records to forecast after loading the model'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    args = parser.parse_args()

    # Check if config exists
    if not Path(args.config).exists():
        print(f"Error: Config file not found: {args.config}")
        sys.exit(1)

    config = load_config(args.config)
    if args.schema:
        config['schema'] = args.schema

    level = 'DEBUG' if args.verbose else config.get('logging', {}).get('level', 'INFO')
    setup_logging(level)

    data_path = args.data or config.get('data', {}).get('path')
    model_path = args.model or config.get('output', {}).get('model_path', model_store.DEFAULT_MODEL_PATH)
    predict_path = args.predict_data or config.get('data', {}).get('predict_path')

    if args.phase in ('train', 'all') and (not data_path or not Path(data_path).exists()):
        print(f"Error: Data file not found: {data_path}")
        print("\nExpected format: CSV with a header row and the monthly statistics columns")
        sys.exit(1)

    try:
        if args.phase in ('train', 'all'):
            train_and_save_model(data_path, model_path, config)

        if args.phase in ('predict', 'all'):
            test_prediction(model_path, predict_path, config)

        return 0

    except SalesForecastError as e:
        logging.error(f"Pipeline failed: {e}", exc_info=True)
        print_exception(str(e))
        return 1

    except Exception as e:
        logging.error(f"Pipeline failed: {e}", exc_info=True)
        print(f"\n❌ Pipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
