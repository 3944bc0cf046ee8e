"""
Data Loader Module
==================

Handles configuration loading, CSV ingestion and data quality checks.

Functions:
    - load_config: Load YAML configuration file
    - load_data: Load a monthly-statistics CSV bound to a record schema
    - validate_data: Check completeness and value constraints
    - load_records: Load, validate and convert rows into typed records
    - print_data_summary: Console summary of a loaded dataset
"""

import logging
from pathlib import Path
from typing import Dict, Any, List, Tuple

import pandas as pd
import numpy as np
import yaml

from .exceptions import IngestionError
from .schema import RecordSchema, COUNTRY_SCHEMA, record_from_mapping

logger = logging.getLogger(__name__)


def load_config(config_path: str = "config/config.yaml") -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Dictionary containing configuration parameters

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is malformed
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)

    logger.info(f"Loaded configuration from {config_path}")
    return config or {}


def load_data(
    file_path: str,
    schema: RecordSchema = COUNTRY_SCHEMA,
    require_label: bool = True,
    separator: str = ','
) -> pd.DataFrame:
    """
    Load a delimited file with a header row and bind its columns to a schema.

    Columns are bound by position, so the header names in the file only need
    to be present, not to match. Inference files may omit the leading label
    column when ``require_label`` is False.

    Args:
        file_path: Path to the CSV file
        schema: Record schema describing the column order
        require_label: Whether the label column must be present
        separator: Field delimiter

    Returns:
        DataFrame whose columns are the schema's source column names

    Raises:
        IngestionError: If the file is missing or has the wrong column count
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise IngestionError(f"Data file not found: {file_path}")

    try:
        df = pd.read_csv(file_path, sep=separator)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise IngestionError(f"Could not parse {file_path}: {e}") from e

    logger.info(f"Loaded data from {file_path}: {df.shape[0]} rows × {df.shape[1]} columns")

    columns = list(schema.columns)
    if df.shape[1] == len(columns):
        df.columns = columns
    elif not require_label and df.shape[1] == len(columns) - 1:
        df.columns = [c for c in columns if c != schema.label.column]
    else:
        raise IngestionError(
            f"Expected {len(columns)} columns for the '{schema.name}' schema, "
            f"but found {df.shape[1]}. Columns: {list(df.columns)}"
        )

    return df


def validate_data(
    df: pd.DataFrame,
    schema: RecordSchema = COUNTRY_SCHEMA,
    strict: bool = True
) -> Tuple[bool, Dict[str, Any]]:
    """
    Validate data quality constraints for monthly aggregate statistics.

    Checks:
        - All non-key columns are numerical
        - No missing values
        - Months lie in [1, 12]
        - Duplicate (unit, year, month) rows (warning only)

    Args:
        df: DataFrame produced by load_data
        schema: Record schema the frame is bound to
        strict: If True, raise IngestionError on validation failure

    Returns:
        Tuple of (is_valid, validation_report)
    """
    report = {
        "total_rows": len(df),
        "total_columns": len(df.columns),
        "column_names": list(df.columns),
        "issues": [],
        "warnings": []
    }

    key_column = schema.categorical.column
    numeric_columns = [c for c in df.columns if c != key_column]

    # Check 1: Non-key columns must be numerical
    non_numeric_cols = df[numeric_columns].select_dtypes(exclude=[np.number]).columns.tolist()
    if non_numeric_cols:
        issue = f"Non-numeric columns found: {non_numeric_cols}"
        report["issues"].append(issue)
        logger.warning(issue)

    # Check 2: Missing values
    missing_counts = df.isnull().sum()
    total_missing = missing_counts.sum()
    if total_missing > 0:
        issue = f"Missing values: {total_missing}"
        report["issues"].append(issue)
        report["missing_by_column"] = missing_counts[missing_counts > 0].to_dict()
        logger.warning(issue)

    # Check 3: Calendar month range
    if "month" in df.columns and "month" not in non_numeric_cols:
        bad_months = (~df["month"].dropna().between(1, 12)).sum()
        if bad_months > 0:
            issue = f"Column 'month' has {bad_months} values outside [1, 12]"
            report["issues"].append(issue)
            logger.warning(issue)

    # Check 4: Duplicate unit-months
    duplicates = df.duplicated(subset=[key_column, "year", "month"]).sum()
    if duplicates > 0:
        warning = f"Duplicate {key_column}/year/month rows found: {duplicates}"
        report["warnings"].append(warning)
        logger.warning(warning)

    is_valid = len(report["issues"]) == 0
    report["is_valid"] = is_valid

    if strict and not is_valid:
        raise IngestionError(f"Data validation failed: {report['issues']}")

    return is_valid, report


def load_records(
    file_path: str,
    schema: RecordSchema = COUNTRY_SCHEMA,
    require_label: bool = True
) -> List[Any]:
    """
    Load a statistics file and convert every row into a typed record.

    Args:
        file_path: Path to the CSV file
        schema: Record schema describing the file
        require_label: Whether rows must carry the next-month label

    Returns:
        List of records, in file order

    Raises:
        IngestionError: If the file is missing, malformed or incomplete
    """
    df = load_data(file_path, schema=schema, require_label=require_label)
    validate_data(df, schema=schema, strict=True)

    records = [
        record_from_mapping(row, schema)
        for row in df.to_dict(orient="records")
    ]

    logger.info(f"Built {len(records)} '{schema.name}' records from {file_path}")
    return records


def print_data_summary(df: pd.DataFrame, schema: RecordSchema = COUNTRY_SCHEMA) -> None:
    """
    Print a formatted summary of the dataset to console.

    Args:
        df: DataFrame to summarize
        schema: Record schema the frame is bound to
    """
    key_column = schema.categorical.column

    print("\n" + "=" * 60)
    print("DATASET SUMMARY")
    print("=" * 60)
    print(f"Shape: {df.shape[0]} rows × {df.shape[1]} columns")
    print(f"Distinct {key_column} values: {df[key_column].nunique()}")

    if "year" in df.columns and "month" in df.columns and len(df):
        periods = df["year"] * 12 + df["month"]
        first, last = int(periods.min()), int(periods.max())
        print(f"Period: {(first - 1) // 12}-{(first - 1) % 12 + 1:02d} "
              f"to {(last - 1) // 12}-{(last - 1) % 12 + 1:02d}")

    print("\nRows per unit:")
    print("-" * 40)
    for key, n_rows in df[key_column].value_counts().head(10).items():
        print(f"  {key}: {n_rows}")

    print("\nBasic Statistics:")
    print("-" * 40)
    print(df.describe().round(4).to_string())
    print("=" * 60 + "\n")
