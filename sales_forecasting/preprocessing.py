"""
Feature Pipeline
================

Deterministic transformation from a raw record into a fixed-length numeric
feature vector plus a label scalar.

Functions:
    - fit: Build the closed one-hot vocabulary from training records
    - transform: Map one record to its feature vector
    - transform_dataset: Stack feature vectors for a sequence of records
    - extract_labels: Collect the next-month labels
    - get_feature_names: Column names matching the feature vector layout
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Sequence, Tuple

import numpy as np
from sklearn.preprocessing import OneHotEncoder

from .exceptions import FitError
from .schema import RecordSchema, COUNTRY_SCHEMA, get_schema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FittedEncoding:
    """
    Feature layout learned from a training set.

    The vector produced by ``transform`` is the numeric fields in
    ``numeric_fields`` order followed by one slot per ``vocabulary`` entry.
    The one-hot encoder is rebuilt from ``vocabulary``, so two encodings
    with the same fields compare equal.
    """

    schema_name: str
    numeric_fields: Tuple[str, ...]
    categorical_field: str
    vocabulary: Tuple[str, ...]
    encoder: OneHotEncoder = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        encoder = OneHotEncoder(
            categories=[list(self.vocabulary)],
            handle_unknown='ignore',
            sparse_output=False,
            dtype=np.float64
        )
        encoder.fit(np.array(self.vocabulary, dtype=object).reshape(-1, 1))
        object.__setattr__(self, 'encoder', encoder)

    @property
    def schema(self) -> RecordSchema:
        return get_schema(self.schema_name)

    @property
    def n_features(self) -> int:
        return len(self.numeric_fields) + len(self.vocabulary)


def fit(dataset: Sequence[Any], schema: RecordSchema = COUNTRY_SCHEMA) -> FittedEncoding:
    """
    Fit the feature encoding on a training set.

    The vocabulary is the sorted set of distinct unit keys, so neither its
    membership nor its order depends on the order of ``dataset``.

    Args:
        dataset: Training records
        schema: Record schema of the records

    Returns:
        Immutable FittedEncoding
    """
    if len(dataset) == 0:
        raise FitError("Cannot fit a feature encoding on an empty dataset")

    key_of = schema.categorical.accessor
    vocabulary = tuple(sorted({key_of(record) for record in dataset}))

    encoding = FittedEncoding(
        schema_name=schema.name,
        numeric_fields=schema.numeric_fields,
        categorical_field=schema.categorical.name,
        vocabulary=vocabulary,
    )

    logger.info(
        f"Fitted '{schema.name}' encoding: {len(encoding.numeric_fields)} numeric + "
        f"{len(vocabulary)} categorical features"
    )
    return encoding


def transform(record: Any, encoding: FittedEncoding) -> np.ndarray:
    """
    Map one record to its feature vector.

    A unit key outside the fitted vocabulary leaves the categorical
    sub-vector all zero.

    Args:
        record: Record of the encoding's schema
        encoding: Fitted encoding

    Returns:
        1-D float array of length ``encoding.n_features``
    """
    return transform_dataset([record], encoding)[0]


def transform_dataset(dataset: Sequence[Any], encoding: FittedEncoding) -> np.ndarray:
    """
    Transform a sequence of records into a feature matrix.

    Args:
        dataset: Records to transform
        encoding: Fitted encoding

    Returns:
        Array of shape (n_records, encoding.n_features)
    """
    if len(dataset) == 0:
        return np.empty((0, encoding.n_features), dtype=np.float64)

    schema = encoding.schema
    accessors = [spec.accessor for spec in schema.numeric]
    numeric = np.array(
        [[float(get(record)) for get in accessors] for record in dataset],
        dtype=np.float64
    )

    key_of = schema.categorical.accessor
    keys = np.array([key_of(record) for record in dataset], dtype=object).reshape(-1, 1)
    categorical = encoding.encoder.transform(keys)

    n_unseen = int((categorical.sum(axis=1) == 0).sum())
    if n_unseen:
        logger.debug(f"{n_unseen} record(s) with an unseen {encoding.categorical_field}, using zero encoding")

    return np.hstack([numeric, categorical])


def extract_labels(dataset: Sequence[Any], schema: RecordSchema = COUNTRY_SCHEMA) -> np.ndarray:
    """Collect the next-month labels of a training set as a float array."""
    label_of = schema.label.accessor
    labels = [label_of(record) for record in dataset]
    if any(label is None for label in labels):
        raise FitError("Training records must carry a next-month label")
    return np.asarray(labels, dtype=np.float64)


def get_feature_names(encoding: FittedEncoding) -> List[str]:
    """
    Generate feature names matching the layout of ``transform``.

    Returns:
        List like ['year', 'month', ..., 'unit_key=United Kingdom', ...]
    """
    names = list(encoding.numeric_fields)
    names.extend(f"{encoding.categorical_field}={key}" for key in encoding.vocabulary)
    return names


def print_encoding_summary(encoding: FittedEncoding) -> None:
    """
    Print a summary of a fitted encoding.

    Args:
        encoding: Fitted encoding
    """
    print("\n" + "=" * 50)
    print("FEATURE ENCODING SUMMARY")
    print("=" * 50)
    print(f"Schema: {encoding.schema_name}")
    print(f"Numeric features ({len(encoding.numeric_fields)}): {', '.join(encoding.numeric_fields)}")
    print(f"Categorical vocabulary ({len(encoding.vocabulary)}):")
    for key in encoding.vocabulary[:20]:
        print(f"  - {key}")
    if len(encoding.vocabulary) > 20:
        print(f"  ... and {len(encoding.vocabulary) - 20} more")
    print(f"Feature vector length: {encoding.n_features}")
    print("=" * 50 + "\n")
