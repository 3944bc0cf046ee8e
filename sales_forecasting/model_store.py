"""
Model Store
===========

Persists a fitted pipeline (feature encoding + trained model) as a single
joblib artifact and restores it.

``save`` always replaces whatever is at the target path. The artifact is
written next to the target and renamed into place, so readers never see a
partially written file; concurrent writers still race (last one wins).
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict

import joblib
from sklearn.ensemble import HistGradientBoostingRegressor

from .exceptions import ArtifactNotFound, ArtifactCorrupt
from .model import FittedModel, FittedPipeline
from .preprocessing import FittedEncoding
from .schema import SCHEMAS

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

DEFAULT_MODEL_PATH = "models/country_sales_ml_model.joblib"

_REQUIRED_KEYS = (
    'format_version', 'schema_name', 'numeric_fields', 'categorical_field',
    'vocabulary', 'label_scale', 'estimator', 'hyperparameters', 'seed',
    'n_features_in', 'training_info',
)


def _to_state(pipeline: FittedPipeline) -> Dict[str, Any]:
    encoding = pipeline.encoding
    model = pipeline.model
    return {
        'format_version': FORMAT_VERSION,
        'schema_name': encoding.schema_name,
        'numeric_fields': list(encoding.numeric_fields),
        'categorical_field': encoding.categorical_field,
        'vocabulary': list(encoding.vocabulary),
        'label_scale': pipeline.label_scale,
        'estimator': model.estimator,
        'hyperparameters': dict(model.hyperparameters),
        'seed': model.seed,
        'n_features_in': model.n_features_in,
        'training_info': dict(model.training_info),
    }


def _from_state(state: Any, path: Path) -> FittedPipeline:
    if not isinstance(state, dict):
        raise ArtifactCorrupt(f"Artifact {path} does not contain a pipeline state")

    missing = [key for key in _REQUIRED_KEYS if key not in state]
    if missing:
        raise ArtifactCorrupt(f"Artifact {path} is missing keys: {missing}")

    if state['format_version'] != FORMAT_VERSION:
        raise ArtifactCorrupt(
            f"Artifact {path} has format version {state['format_version']}, "
            f"expected {FORMAT_VERSION}"
        )

    schema = SCHEMAS.get(state['schema_name'])
    if schema is None:
        raise ArtifactCorrupt(f"Artifact {path} uses unknown schema '{state['schema_name']}'")

    numeric_fields = tuple(state['numeric_fields'])
    if numeric_fields != schema.numeric_fields:
        raise ArtifactCorrupt(
            f"Artifact {path} numeric field order {list(numeric_fields)} does not match "
            f"the '{schema.name}' schema {list(schema.numeric_fields)}"
        )

    if not isinstance(state['estimator'], HistGradientBoostingRegressor):
        raise ArtifactCorrupt(
            f"Artifact {path} holds a {type(state['estimator']).__name__}, "
            f"expected a fitted HistGradientBoostingRegressor"
        )

    encoding = FittedEncoding(
        schema_name=schema.name,
        numeric_fields=numeric_fields,
        categorical_field=state['categorical_field'],
        vocabulary=tuple(state['vocabulary']),
    )
    if encoding.n_features != state['n_features_in']:
        raise ArtifactCorrupt(
            f"Artifact {path} expects {state['n_features_in']} features, "
            f"but its encoding produces {encoding.n_features}"
        )

    model = FittedModel(
        estimator=state['estimator'],
        hyperparameters=dict(state['hyperparameters']),
        seed=state['seed'],
        n_features_in=state['n_features_in'],
        training_info=dict(state['training_info']),
    )
    return FittedPipeline(encoding=encoding, model=model, label_scale=state['label_scale'])


def save(pipeline: FittedPipeline, path: str = DEFAULT_MODEL_PATH) -> str:
    """
    Save a fitted pipeline, replacing any existing artifact at ``path``.

    Args:
        pipeline: Fitted pipeline to persist
        path: Artifact path

    Returns:
        The artifact path as a string
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    os.close(fd)
    try:
        joblib.dump(_to_state(pipeline), tmp_name)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.info(f"Model saved to {path}")
    return str(path)


def load(path: str = DEFAULT_MODEL_PATH) -> FittedPipeline:
    """
    Load a fitted pipeline saved by ``save``.

    Args:
        path: Artifact path

    Returns:
        FittedPipeline behaving identically to the saved one

    Raises:
        ArtifactNotFound: If nothing exists at ``path``
        ArtifactCorrupt: If the file cannot be parsed into a pipeline
    """
    path = Path(path)
    if not path.is_file():
        raise ArtifactNotFound(f"Model file not found: {path}")

    try:
        state = joblib.load(path)
    except Exception as e:
        raise ArtifactCorrupt(f"Could not read model artifact {path}: {e}") from e

    pipeline = _from_state(state, path)
    logger.info(f"Model loaded from {path}")
    return pipeline
