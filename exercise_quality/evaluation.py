"""
Model Evaluation Module
========================

Provides classification metrics and visualizations for model performance.

Features:
    - Confusion matrix, accuracy with exact 95% confidence interval
    - No-information rate, Cohen's kappa, out-of-sample error
    - Per-class precision, recall and F1
    - Confusion matrix heatmap and bag-count sweep plots
    - Evaluation report generation
"""

import logging
import json
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from scipy.stats import binomtest
from sklearn.metrics import confusion_matrix, cohen_kappa_score, classification_report

logger = logging.getLogger(__name__)


def calculate_metrics(
    y_true,
    y_pred,
    labels: Optional[List[str]] = None,
    confidence_level: float = 0.95
) -> Dict[str, Any]:
    """
    Calculate classification metrics from the confusion matrix.

    Args:
        y_true: Ground truth labels
        y_pred: Predicted labels
        labels: Class labels in display order (default: sorted observed labels)
        confidence_level: Confidence level of the accuracy interval

    Returns:
        Dictionary containing overall metrics, per-class metrics and
        the confusion matrix (rows = actual, columns = predicted)
    """
    y_true = np.asarray(y_true)
    y_pred = np.asarray(y_pred)

    if len(y_true) == 0:
        raise ValueError("No samples to evaluate")

    if labels is None:
        labels = sorted(set(y_true.tolist()) | set(y_pred.tolist()))
    labels = list(labels)

    # Only pairs where both labels are listed enter the matrix
    if not (np.isin(y_true, labels) & np.isin(y_pred, labels)).any():
        raise ValueError(f"No samples to evaluate for labels {labels}")

    cm = confusion_matrix(y_true, y_pred, labels=labels)
    total = int(cm.sum())
    correct = int(np.trace(cm))
    accuracy = correct / total

    ci = binomtest(correct, total).proportion_ci(
        confidence_level=confidence_level, method='exact'
    )
    no_information_rate = float(cm.sum(axis=1).max() / total)

    report = classification_report(
        y_true, y_pred, labels=labels, output_dict=True, zero_division=0
    )

    per_class = {}
    for label in labels:
        class_report = report[str(label)]
        per_class[str(label)] = {
            'precision': float(class_report['precision']),
            'recall': float(class_report['recall']),
            'f1': float(class_report['f1-score']),
            'support': int(class_report['support'])
        }

    metrics = {
        'labels': [str(label) for label in labels],
        'confusion_matrix': cm.tolist(),
        'per_class': per_class,
        'overall': {
            'accuracy': float(accuracy),
            'accuracy_ci_lower': float(ci.low),
            'accuracy_ci_upper': float(ci.high),
            'confidence_level': confidence_level,
            'no_information_rate': no_information_rate,
            'kappa': float(cohen_kappa_score(y_true, y_pred, labels=labels)),
            'out_of_sample_error': float(1.0 - accuracy),
            'n_samples': total
        }
    }

    return metrics


def plot_confusion_matrix(
    metrics: Dict[str, Any],
    normalize: bool = False,
    figsize: Tuple[int, int] = (8, 7),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Create a confusion matrix heatmap.

    Args:
        metrics: Metrics dictionary from calculate_metrics
        normalize: Show row-normalized rates instead of counts
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    labels = metrics['labels']
    cm = np.array(metrics['confusion_matrix'], dtype=float)

    if normalize:
        row_sums = cm.sum(axis=1, keepdims=True)
        cm = np.divide(cm, row_sums, out=np.zeros_like(cm), where=row_sums > 0)

    fig, ax = plt.subplots(figsize=figsize)

    sns.heatmap(
        pd.DataFrame(cm, index=labels, columns=labels),
        annot=True,
        fmt='.2f' if normalize else '.0f',
        cmap='Blues',
        square=True,
        linewidths=0.5,
        cbar_kws={"shrink": 0.8, "label": "Rate" if normalize else "Count"},
        ax=ax
    )

    accuracy = metrics['overall']['accuracy']
    ax.set_xlabel('Predicted')
    ax.set_ylabel('Actual')
    ax.set_title(f'Confusion Matrix (Accuracy={accuracy:.4f})', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Confusion matrix saved to {save_path}")

    return fig


def plot_sweep_accuracy(
    sweep: pd.DataFrame,
    best_n_bags: Optional[int] = None,
    figsize: Tuple[int, int] = (8, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Plot validation accuracy against bag count.

    Args:
        sweep: DataFrame from model.sweep_bag_counts
        best_n_bags: Chosen bag count to highlight
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=figsize)

    ax.plot(sweep['n_bags'], sweep['accuracy'], 'o-', linewidth=2, color='steelblue')

    if best_n_bags is not None:
        best = sweep[sweep['n_bags'] == best_n_bags]
        ax.scatter(best['n_bags'], best['accuracy'], color='red', s=120, zorder=5,
                   label=f'Selected: {best_n_bags} bags')
        ax.legend(loc='lower right')

    ax.set_xlabel('Number of bags')
    ax.set_ylabel('Validation accuracy')
    ax.set_xticks(sweep['n_bags'])
    ax.set_title('Bag Count Sweep', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Sweep plot saved to {save_path}")

    return fig


def plot_class_metrics(
    metrics: Dict[str, Any],
    figsize: Tuple[int, int] = (10, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Create a grouped bar chart of precision, recall and F1 per class.

    Args:
        metrics: Metrics dictionary from calculate_metrics
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    frame = pd.DataFrame(metrics['per_class']).T[['precision', 'recall', 'f1']]

    fig, ax = plt.subplots(figsize=figsize)
    frame.plot(kind='bar', ax=ax, alpha=0.8, rot=0)

    ax.axhline(metrics['overall']['accuracy'], color='red', linestyle='--',
               label=f"Accuracy: {metrics['overall']['accuracy']:.4f}")
    ax.set_xlabel('Class')
    ax.set_ylabel('Score')
    ax.set_ylim([0, 1.05])
    ax.set_title('Per-Class Performance', fontsize=14, fontweight='bold')
    ax.legend(loc='lower right', fontsize=8)
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Class metrics plot saved to {save_path}")

    return fig


def evaluate_model(
    y_true,
    y_pred,
    labels: Optional[List[str]] = None,
    sweep: Optional[pd.DataFrame] = None,
    best_n_bags: Optional[int] = None,
    output_dir: str = "reports/",
    show_plots: bool = False
) -> Dict[str, Any]:
    """
    Run complete model evaluation and generate all reports.

    Args:
        y_true: Ground truth labels
        y_pred: Predicted labels
        labels: Class labels in display order
        sweep: Bag-count sweep results (optional)
        best_n_bags: Chosen bag count (optional)
        output_dir: Directory for output files
        show_plots: Whether to display plots interactively

    Returns:
        Dictionary containing metrics and file paths
    """
    output_dir = Path(output_dir)
    figures_dir = output_dir / "figures"
    metrics_dir = output_dir / "metrics"

    figures_dir.mkdir(parents=True, exist_ok=True)
    metrics_dir.mkdir(parents=True, exist_ok=True)

    logger.info("=" * 60)
    logger.info("STARTING MODEL EVALUATION")
    logger.info("=" * 60)

    logger.info("Calculating evaluation metrics...")
    metrics = calculate_metrics(y_true, y_pred, labels)

    if sweep is not None:
        metrics['sweep'] = sweep.to_dict(orient='records')
        metrics['best_n_bags'] = best_n_bags

    metrics_file = metrics_dir / "evaluation_metrics.json"
    with open(metrics_file, 'w') as f:
        json.dump(metrics, f, indent=2)
    logger.info(f"Metrics saved to {metrics_file}")

    figures = []

    logger.info("Generating confusion matrix...")
    plot_confusion_matrix(
        metrics,
        save_path=str(figures_dir / "eval_confusion_matrix.png")
    )
    figures.append("eval_confusion_matrix.png")

    logger.info("Generating per-class metrics...")
    plot_class_metrics(
        metrics,
        save_path=str(figures_dir / "eval_class_metrics.png")
    )
    figures.append("eval_class_metrics.png")

    if sweep is not None and not sweep.empty:
        logger.info("Generating sweep plot...")
        plot_sweep_accuracy(
            sweep, best_n_bags,
            save_path=str(figures_dir / "eval_bag_sweep.png")
        )
        figures.append("eval_bag_sweep.png")

    if show_plots:
        plt.show()
    else:
        plt.close('all')

    result = {
        'metrics': metrics,
        'figures': figures,
        'metrics_file': str(metrics_file)
    }

    logger.info("=" * 60)
    logger.info("EVALUATION COMPLETE")
    logger.info(f"  Accuracy: {metrics['overall']['accuracy']:.6f}")
    logger.info(f"  Kappa: {metrics['overall']['kappa']:.6f}")
    logger.info("=" * 60)

    return result


def print_evaluation_report(metrics: Dict[str, Any]) -> None:
    """
    Print a formatted evaluation report to console.

    Args:
        metrics: Metrics dictionary from calculate_metrics
    """
    overall = metrics['overall']
    labels = metrics['labels']

    print("\n" + "=" * 70)
    print("MODEL EVALUATION REPORT")
    print("=" * 70)

    print("\nConfusion Matrix (rows = actual, columns = predicted):")
    print("-" * 70)
    cm = pd.DataFrame(metrics['confusion_matrix'], index=labels, columns=labels)
    print(cm.to_string())

    print("\nPer-Class Metrics:")
    print("-" * 70)
    print(f"{'Class':<10} {'Precision':<12} {'Recall':<12} {'F1':<12} {'Support':<10}")
    print("-" * 70)

    for label, class_metrics in metrics['per_class'].items():
        print(f"{label:<10} {class_metrics['precision']:<12.4f} {class_metrics['recall']:<12.4f} "
              f"{class_metrics['f1']:<12.4f} {class_metrics['support']:<10}")

    print("-" * 70)
    print("\nOverall Metrics:")
    print(f"  • Accuracy: {overall['accuracy']:.4f}")
    print(f"  • {overall['confidence_level']:.0%} CI: "
          f"({overall['accuracy_ci_lower']:.4f}, {overall['accuracy_ci_upper']:.4f})")
    print(f"  • No Information Rate: {overall['no_information_rate']:.4f}")
    print(f"  • Kappa: {overall['kappa']:.4f}")
    print(f"  • Expected out-of-sample error: {overall['out_of_sample_error']:.2%}")
    print(f"  • Samples evaluated: {overall['n_samples']}")

    accuracy = overall['accuracy']
    print("\nInterpretation:")
    if accuracy > 0.95:
        print("  ✓ Excellent classification accuracy (> 95%)")
    elif accuracy > 0.8:
        print("  ✓ Good classification accuracy (> 80%)")
    elif accuracy > overall['no_information_rate']:
        print("  ⚠ Better than always predicting the majority class")
    else:
        print("  ✗ No better than the majority class - consider different approach")

    print("=" * 70 + "\n")
