"""
Model Training Module
=====================

Trains the next-month sales regressor.

Features:
    - HistGradientBoostingRegressor with Poisson loss (log-link Tweedie,
      variance power 1) for strictly positive, right-skewed targets
    - Fixed hyperparameters from the config file
    - Explicit seed, no process-wide random state
    - FittedPipeline bundling the feature encoding with the trained model
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, Optional, Sequence

import numpy as np
from sklearn.ensemble import HistGradientBoostingRegressor

from . import preprocessing
from .exceptions import FitError
from .preprocessing import FittedEncoding
from .schema import RecordSchema, COUNTRY_SCHEMA

logger = logging.getLogger(__name__)

DEFAULT_SEED = 2

# Tweedie variance power of the training loss (1 == Poisson)
TWEEDIE_POWER = 1.0

DEFAULT_HYPERPARAMETERS: Dict[str, Any] = {
    'learning_rate': 0.2,
    'max_iter': 100,
    'max_leaf_nodes': 20,
    'min_samples_leaf': 10,
    'l2_regularization': 0.0,
}


@dataclass(frozen=True)
class FittedModel:
    """Trained regressor plus the settings it was trained with."""

    estimator: HistGradientBoostingRegressor
    hyperparameters: Dict[str, Any]
    seed: int
    n_features_in: int
    training_info: Dict[str, Any] = field(default_factory=dict)

    def predict(self, X: np.ndarray) -> np.ndarray:
        """
        Score a feature matrix.

        Args:
            X: Feature array of shape (n_samples, n_features)

        Returns:
            Predictions of shape (n_samples,)
        """
        if X.shape[1] != self.n_features_in:
            raise ValueError(
                f"Expected {self.n_features_in} features, but got {X.shape[1]}"
            )
        return self.estimator.predict(X)


@dataclass(frozen=True)
class FittedPipeline:
    """
    Feature encoding and trained model fitted together.

    Never updated in place: re-training produces a new instance.
    """

    encoding: FittedEncoding
    model: FittedModel
    label_scale: str = 'log10'

    @property
    def schema(self) -> RecordSchema:
        return self.encoding.schema


def hyperparameters_from_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Read the model hyperparameters from the configuration dictionary.

    Unknown keys are ignored; missing keys fall back to the defaults.
    """
    model_config = config.get('model', {}) or {}
    return {
        name: model_config.get(name, default)
        for name, default in DEFAULT_HYPERPARAMETERS.items()
    }


def _create_estimator(hyperparameters: Dict[str, Any], seed: int) -> HistGradientBoostingRegressor:
    """Create the base HistGradientBoostingRegressor."""
    return HistGradientBoostingRegressor(
        loss='poisson',
        learning_rate=hyperparameters['learning_rate'],
        max_iter=hyperparameters['max_iter'],
        max_leaf_nodes=hyperparameters['max_leaf_nodes'],
        min_samples_leaf=hyperparameters['min_samples_leaf'],
        l2_regularization=hyperparameters['l2_regularization'],
        early_stopping=False,
        random_state=seed,
        verbose=0
    )


def fit_model(
    X: np.ndarray,
    y: np.ndarray,
    seed: int = DEFAULT_SEED,
    hyperparameters: Optional[Dict[str, Any]] = None
) -> FittedModel:
    """
    Train the regressor on a feature matrix.

    Args:
        X: Feature array of shape (n_samples, n_features)
        y: Label array of shape (n_samples,)
        seed: Random seed threaded into the estimator
        hyperparameters: Overrides for DEFAULT_HYPERPARAMETERS

    Returns:
        FittedModel

    Raises:
        FitError: If the data is unusable or the estimator fails to fit
    """
    params = dict(DEFAULT_HYPERPARAMETERS)
    params.update(hyperparameters or {})

    if len(X) == 0:
        raise FitError("Cannot train on an empty dataset")
    if len(X) != len(y):
        raise FitError(f"X and y length mismatch: {len(X)} vs {len(y)}")
    if not np.isfinite(X).all() or not np.isfinite(y).all():
        raise FitError("Training data contains non-finite values")

    start_time = datetime.now()
    logger.info(f"Training on X={X.shape}, y={y.shape} (seed={seed})")
    logger.debug(f"Hyperparameters: {params}")

    estimator = _create_estimator(params, seed)
    try:
        estimator.fit(X, y)
    except (ValueError, TypeError, FloatingPointError) as e:
        raise FitError(f"Model training failed: {e}") from e

    duration = (datetime.now() - start_time).total_seconds()
    training_info = {
        'training_duration_seconds': duration,
        'n_samples': int(X.shape[0]),
        'n_features': int(X.shape[1]),
        'n_iterations': int(estimator.n_iter_),
        'trained_at': datetime.now().isoformat(),
    }

    logger.info(f"Training complete in {duration:.2f}s ({estimator.n_iter_} iterations)")

    return FittedModel(
        estimator=estimator,
        hyperparameters=params,
        seed=seed,
        n_features_in=int(X.shape[1]),
        training_info=training_info
    )


def fit_pipeline(
    dataset: Sequence[Any],
    schema: RecordSchema = COUNTRY_SCHEMA,
    seed: int = DEFAULT_SEED,
    hyperparameters: Optional[Dict[str, Any]] = None,
    label_scale: str = 'log10'
) -> FittedPipeline:
    """
    Fit the feature encoding and the regressor on a full dataset.

    Args:
        dataset: Labelled training records
        schema: Record schema of the records
        seed: Random seed
        hyperparameters: Overrides for DEFAULT_HYPERPARAMETERS
        label_scale: Scale the label column is expressed in, kept for reporting

    Returns:
        New FittedPipeline
    """
    encoding = preprocessing.fit(dataset, schema)
    X = preprocessing.transform_dataset(dataset, encoding)
    y = preprocessing.extract_labels(dataset, schema)

    model = fit_model(X, y, seed=seed, hyperparameters=hyperparameters)
    return FittedPipeline(encoding=encoding, model=model, label_scale=label_scale)


def print_model_summary(pipeline: FittedPipeline) -> None:
    """
    Print a summary of a fitted pipeline.

    Args:
        pipeline: Fitted pipeline
    """
    model = pipeline.model
    print("\n" + "=" * 50)
    print("MODEL SUMMARY")
    print("=" * 50)
    print(f"Model Type: HistGradientBoostingRegressor(loss='poisson')")
    print(f"Schema: {pipeline.encoding.schema_name}")
    print(f"Number of input features: {model.n_features_in}")
    print(f"Known units: {len(pipeline.encoding.vocabulary)}")
    print(f"Seed: {model.seed}")
    print(f"\nHyperparameters:")
    for name, value in model.hyperparameters.items():
        print(f"  - {name}: {value}")

    if model.training_info:
        print(f"\nTraining Info:")
        print(f"  - Duration: {model.training_info.get('training_duration_seconds', 0.0):.2f}s")
        print(f"  - Samples: {model.training_info.get('n_samples', 'N/A')}")
        print(f"  - Iterations: {model.training_info.get('n_iterations', 'N/A')}")

    print("=" * 50 + "\n")
