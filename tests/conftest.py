"""Shared fixtures: deterministic synthetic monthly statistics."""

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from sales_forecasting.schema import RawRecord, ProductRecord, COUNTRY_SCHEMA, PRODUCT_SCHEMA


def _monthly_rows(units, n_months, seed, start_year=2016):
    """Random-walk monthly sales per unit with log10 next-month labels."""
    rng = np.random.RandomState(seed)
    rows = []
    for u, unit in enumerate(units):
        level = 10 ** (3 + u)
        sales = [level * rng.uniform(0.8, 1.2)]
        for _ in range(n_months + 1):
            sales.append(max(sales[-1] * rng.uniform(0.85, 1.2), 1.0))

        for m in range(n_months):
            count = float(rng.randint(10, 2000))
            avg = sales[m + 1] / count
            rows.append({
                'unit_key': unit,
                'year': float(start_year + (m // 12)),
                'month': float(m % 12 + 1),
                'units_sold': sales[m + 1],
                'avg': avg,
                'count': count,
                'max': avg * rng.uniform(1.5, 3.0),
                'min': avg * rng.uniform(0.2, 0.6),
                'median': avg * rng.uniform(0.8, 1.1),
                'std': avg * rng.uniform(0.5, 2.0),
                'prev': sales[m],
                'label_next': float(np.log10(sales[m + 2])),
            })
    return rows


def make_country_records(units=("UK", "US"), n_months=24, seed=0):
    return [RawRecord(**row) for row in _monthly_rows(units, n_months, seed)]


def make_product_records(units=("988", "1119"), n_months=24, seed=0):
    rows = _monthly_rows(units, n_months, seed)
    for row in rows:
        del row['median'], row['std']
    return [ProductRecord(**row) for row in rows]


@pytest.fixture
def country_records():
    """Two countries, 24 months each."""
    return make_country_records()


@pytest.fixture
def large_country_records():
    """Five countries, 24 months each (120 rows)."""
    return make_country_records(
        units=("France", "Germany", "Spain", "United Kingdom", "United States"),
        n_months=24,
        seed=7
    )


@pytest.fixture
def product_records():
    return make_product_records()


@pytest.fixture
def small_hyperparameters():
    """Fast settings for tests."""
    return {
        'learning_rate': 0.2,
        'max_iter': 30,
        'max_leaf_nodes': 8,
        'min_samples_leaf': 5,
        'l2_regularization': 0.0,
    }


def records_to_frame(records, schema=COUNTRY_SCHEMA, include_label=True):
    """Lay records out in the column order of the schema's source file."""
    column_to_field = schema.field_for_column()
    columns = [c for c in schema.columns if include_label or c != schema.label.column]
    return pd.DataFrame(
        [[getattr(r, column_to_field[c]) for c in columns] for r in records],
        columns=columns
    )


@pytest.fixture
def country_csv(tmp_path, country_records):
    """Country statistics written as Data/country.stats.csv would be."""
    path = tmp_path / "country.stats.csv"
    records_to_frame(country_records).to_csv(path, index=False)
    return path


@pytest.fixture
def product_csv(tmp_path, product_records):
    path = tmp_path / "product.stats.csv"
    records_to_frame(product_records, PRODUCT_SCHEMA).to_csv(path, index=False)
    return path
