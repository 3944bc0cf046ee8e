"""
Cross-Validation Module
=======================

Estimates generalization error with k-fold cross-validation.

Features:
    - Seeded k-fold partitioning (every row held out exactly once)
    - Per-fold RMSE, MAE and mean Tweedie deviance (the training loss)
    - Optional parallel fold fitting through joblib
    - Mean ± std aggregation, metrics JSON and diagnostic figures

The pipelines fitted here are diagnostic only. The production pipeline is
fitted separately on the full dataset.
"""

import logging
import json
from pathlib import Path
from typing import Dict, Any, List, Optional, Sequence

import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns
from joblib import Parallel, delayed
from sklearn.metrics import mean_squared_error, mean_absolute_error, mean_tweedie_deviance
from sklearn.model_selection import KFold

from .model import fit_pipeline, DEFAULT_SEED, TWEEDIE_POWER
from .preprocessing import transform_dataset, extract_labels
from .schema import RecordSchema, COUNTRY_SCHEMA

logger = logging.getLogger(__name__)

METRIC_NAMES = ('rmse', 'mae', 'tweedie_deviance')


def make_folds(n_samples: int, k: int, seed: int = DEFAULT_SEED) -> List[np.ndarray]:
    """
    Partition row indices into k held-out folds.

    Args:
        n_samples: Number of rows
        k: Number of folds (2 <= k <= n_samples)
        seed: Shuffle seed

    Returns:
        List of k index arrays; together they cover range(n_samples) once
    """
    if k < 2:
        raise ValueError(f"Cross-validation needs at least 2 folds, got {k}")
    if k > n_samples:
        raise ValueError(f"Cannot split {n_samples} rows into {k} folds")

    splitter = KFold(n_splits=k, shuffle=True, random_state=seed)
    return [test_idx for _, test_idx in splitter.split(np.arange(n_samples))]


def calculate_metrics(y_true: np.ndarray, y_pred: np.ndarray) -> Dict[str, float]:
    """
    Calculate the regression metrics reported per fold.

    Args:
        y_true: Ground truth labels
        y_pred: Predicted labels (strictly positive, as produced by the model)

    Returns:
        Dictionary with rmse, mae and tweedie_deviance
    """
    return {
        'rmse': float(np.sqrt(mean_squared_error(y_true, y_pred))),
        'mae': float(mean_absolute_error(y_true, y_pred)),
        'tweedie_deviance': float(
            mean_tweedie_deviance(y_true, y_pred, power=TWEEDIE_POWER)
        ),
    }


def _fit_and_score_fold(
    fold: int,
    dataset: Sequence[Any],
    test_idx: np.ndarray,
    schema: RecordSchema,
    seed: int,
    hyperparameters: Optional[Dict[str, Any]]
) -> Dict[str, Any]:
    """Fit on every row outside ``test_idx`` and score the held-out rows."""
    held_out = set(test_idx.tolist())
    train = [record for i, record in enumerate(dataset) if i not in held_out]
    test = [dataset[i] for i in test_idx]

    pipeline = fit_pipeline(train, schema=schema, seed=seed, hyperparameters=hyperparameters)

    X_test = transform_dataset(test, pipeline.encoding)
    y_test = extract_labels(test, schema)
    y_pred = pipeline.model.predict(X_test)

    metrics = calculate_metrics(y_test, y_pred)
    logger.info(
        f"Fold {fold}: RMSE={metrics['rmse']:.6f} MAE={metrics['mae']:.6f} "
        f"Deviance={metrics['tweedie_deviance']:.6f}"
    )
    return {
        'fold': fold,
        'n_train': len(train),
        'n_test': len(test),
        'test_indices': test_idx,
        'y_true': y_test,
        'y_pred': y_pred,
        **metrics,
    }


def aggregate_fold_metrics(fold_results: Sequence[Dict[str, Any]]) -> Dict[str, Dict[str, float]]:
    """
    Reduce per-fold metrics to their mean and standard deviation.

    Returns:
        {'mean': {metric: value}, 'std': {metric: value}}
    """
    summary = {'mean': {}, 'std': {}}
    for name in METRIC_NAMES:
        values = np.array([r[name] for r in fold_results], dtype=np.float64)
        summary['mean'][name] = float(np.mean(values))
        summary['std'][name] = float(np.std(values))
    return summary


def cross_validate(
    dataset: Sequence[Any],
    k: int = 6,
    schema: RecordSchema = COUNTRY_SCHEMA,
    seed: int = DEFAULT_SEED,
    hyperparameters: Optional[Dict[str, Any]] = None,
    n_jobs: int = 1
) -> Dict[str, Any]:
    """
    Run k-fold cross-validation of the feature pipeline and trainer.

    Each fold refits the encoding and the model on the other k-1 folds.
    Fold fits share no state and run in parallel when ``n_jobs`` != 1; the
    results are gathered before aggregation.

    Args:
        dataset: Labelled records
        k: Number of folds
        schema: Record schema of the records
        seed: Seed for both the partition and every fold's model
        hyperparameters: Overrides for the model defaults
        n_jobs: joblib worker count (-1 for all cores)

    Returns:
        Dictionary with 'k', 'folds', 'mean', 'std' and 'out_of_fold'
    """
    logger.info("=" * 60)
    logger.info(f"CROSS-VALIDATING ({k} folds, {len(dataset)} rows)")
    logger.info("=" * 60)

    folds = make_folds(len(dataset), k, seed)

    fold_results = Parallel(n_jobs=n_jobs)(
        delayed(_fit_and_score_fold)(i, dataset, test_idx, schema, seed, hyperparameters)
        for i, test_idx in enumerate(folds)
    )
    fold_results = sorted(fold_results, key=lambda r: r['fold'])

    y_true = np.empty(len(dataset), dtype=np.float64)
    y_pred = np.empty(len(dataset), dtype=np.float64)
    for r in fold_results:
        y_true[r['test_indices']] = r['y_true']
        y_pred[r['test_indices']] = r['y_pred']

    summary = aggregate_fold_metrics(fold_results)

    result = {
        'k': k,
        'seed': seed,
        'folds': [
            {key: r[key] for key in ('fold', 'n_train', 'n_test') + METRIC_NAMES}
            for r in fold_results
        ],
        'mean': summary['mean'],
        'std': summary['std'],
        'out_of_fold': {'y_true': y_true, 'y_pred': y_pred},
    }

    logger.info("=" * 60)
    logger.info("CROSS-VALIDATION COMPLETE")
    for name in METRIC_NAMES:
        logger.info(f"  {name}: {summary['mean'][name]:.6f} ± {summary['std'][name]:.6f}")
    logger.info("=" * 60)

    return result


def plot_fold_metrics(
    cv_result: Dict[str, Any],
    figsize=(14, 4),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Bar chart of each metric per fold with its cross-fold mean.

    Args:
        cv_result: Result of cross_validate
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    folds = [r['fold'] for r in cv_result['folds']]
    colors = ['steelblue', 'coral', 'seagreen']
    titles = ['Root Mean Squared Error', 'Mean Absolute Error', 'Mean Tweedie Deviance']

    fig, axes = plt.subplots(1, len(METRIC_NAMES), figsize=figsize)

    for ax, name, color, title in zip(axes, METRIC_NAMES, colors, titles):
        values = [r[name] for r in cv_result['folds']]
        ax.bar(folds, values, color=color, alpha=0.8)
        ax.axhline(cv_result['mean'][name], color='red', linestyle='--',
                   label=f"Mean: {cv_result['mean'][name]:.4f} ± {cv_result['std'][name]:.4f}")
        ax.set_xlabel('Fold')
        ax.set_title(title, fontweight='bold')
        ax.set_xticks(folds)
        ax.legend(fontsize=8)

    plt.suptitle(f"{cv_result['k']}-Fold Cross-Validation", fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Fold metrics plot saved to {save_path}")

    return fig


def plot_actual_vs_predicted(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    figsize=(7, 6),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Scatter of out-of-fold predictions against the actual labels.

    Args:
        y_true: Ground truth labels
        y_pred: Out-of-fold predictions
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=figsize)

    sns.scatterplot(x=y_true, y=y_pred, alpha=0.6, s=25, ax=ax)

    min_val = min(y_true.min(), y_pred.min())
    max_val = max(y_true.max(), y_pred.max())
    ax.plot([min_val, max_val], [min_val, max_val], 'r--', linewidth=2, label='Perfect')

    rmse = np.sqrt(mean_squared_error(y_true, y_pred))
    ax.set_xlabel('Actual')
    ax.set_ylabel('Predicted (out of fold)')
    ax.set_title(f'Actual vs Predicted\nRMSE={rmse:.4f}', fontsize=10, fontweight='bold')
    ax.legend(loc='upper left', fontsize=8)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Actual vs Predicted plot saved to {save_path}")

    return fig


def evaluate_cross_validation(
    dataset: Sequence[Any],
    k: int = 6,
    schema: RecordSchema = COUNTRY_SCHEMA,
    seed: int = DEFAULT_SEED,
    hyperparameters: Optional[Dict[str, Any]] = None,
    n_jobs: int = 1,
    output_dir: str = "reports/",
    save_figures: bool = True
) -> Dict[str, Any]:
    """
    Cross-validate and write the metrics JSON and diagnostic figures.

    Args:
        dataset: Labelled records
        k: Number of folds
        schema: Record schema of the records
        seed: Random seed
        hyperparameters: Overrides for the model defaults
        n_jobs: joblib worker count
        output_dir: Directory for output files
        save_figures: Whether to render figures

    Returns:
        Dictionary containing the cross-validation result and file paths
    """
    output_dir = Path(output_dir)
    metrics_dir = output_dir / "metrics"
    figures_dir = output_dir / "figures"
    metrics_dir.mkdir(parents=True, exist_ok=True)

    cv_result = cross_validate(
        dataset, k=k, schema=schema, seed=seed,
        hyperparameters=hyperparameters, n_jobs=n_jobs
    )

    metrics_file = metrics_dir / "cross_validation_metrics.json"
    serializable = {key: cv_result[key] for key in ('k', 'seed', 'folds', 'mean', 'std')}
    with open(metrics_file, 'w') as f:
        json.dump(serializable, f, indent=2)
    logger.info(f"Metrics saved to {metrics_file}")

    figures = []
    if save_figures:
        figures_dir.mkdir(parents=True, exist_ok=True)

        plot_fold_metrics(cv_result, save_path=str(figures_dir / "cv_fold_metrics.png"))
        figures.append("cv_fold_metrics.png")

        oof = cv_result['out_of_fold']
        plot_actual_vs_predicted(
            oof['y_true'], oof['y_pred'],
            save_path=str(figures_dir / "cv_actual_vs_predicted.png")
        )
        figures.append("cv_actual_vs_predicted.png")

        plt.close('all')

    return {
        'cross_validation': cv_result,
        'figures': figures,
        'metrics_file': str(metrics_file)
    }


def print_cross_validation_report(cv_result: Dict[str, Any], model_name: str = "") -> None:
    """
    Print per-fold and average metrics to console.

    Args:
        cv_result: Result of cross_validate
        model_name: Label printed in the header
    """
    print("\n" + "=" * 70)
    print(f"CROSS-VALIDATION METRICS {model_name}".rstrip())
    print("=" * 70)
    print(f"{'Fold':<6} {'Train':<8} {'Test':<8} {'RMSE':<14} {'MAE':<14} {'Deviance':<14}")
    print("-" * 70)

    for r in cv_result['folds']:
        print(f"{r['fold']:<6} {r['n_train']:<8} {r['n_test']:<8} {r['rmse']:<14.6f} "
              f"{r['mae']:<14.6f} {r['tweedie_deviance']:<14.6f}")

    print("-" * 70)
    print(f"\nAverage over {cv_result['k']} folds:")
    print(f"  • RMSE:            {cv_result['mean']['rmse']:.6f} (± {cv_result['std']['rmse']:.6f})")
    print(f"  • MAE:             {cv_result['mean']['mae']:.6f} (± {cv_result['std']['mae']:.6f})")
    print(f"  • Tweedie deviance: {cv_result['mean']['tweedie_deviance']:.6f} "
          f"(± {cv_result['std']['tweedie_deviance']:.6f})")
    print("=" * 70 + "\n")
