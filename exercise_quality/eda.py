"""
Exploratory Data Analysis (EDA) Module
=======================================

Provides analysis and visualization of the sensor dataset.

Functions:
    - plot_class_distribution: Bar chart of exercise classes
    - plot_missingness: Histogram of per-column missing fractions
    - plot_correlation_matrix: Correlation heatmap of retained sensor columns
    - plot_pca_variance: Explained and cumulative variance per component
    - plot_component_scatter: First two components coloured by class
    - plot_component_distributions: Histograms of the leading components
    - generate_eda_report: Full EDA report with all visualizations
"""

import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple

import pandas as pd
import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns
from scipy import stats

from .preprocessing import SensorPreprocessor, missing_fraction

logger = logging.getLogger(__name__)

# Set style for all plots
plt.style.use('seaborn-v0_8-whitegrid')
sns.set_palette("husl")


def plot_class_distribution(
    df: pd.DataFrame,
    label_column: str = "classe",
    figsize: Tuple[int, int] = (8, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Create a bar chart of observations per class.

    Args:
        df: DataFrame containing the label column
        label_column: Name of the class label column
        figsize: Figure size (width, height)
        save_path: Path to save the figure (optional)

    Returns:
        Matplotlib Figure object
    """
    counts = df[label_column].value_counts().sort_index()

    fig, ax = plt.subplots(figsize=figsize)
    ax.bar(counts.index.astype(str), counts.values, alpha=0.8)

    total = counts.sum()
    for idx, value in enumerate(counts.values):
        ax.text(idx, value, f'{value / total:.1%}', ha='center', va='bottom', fontsize=9)

    ax.set_xlabel('Class')
    ax.set_ylabel('Observations')
    ax.set_title('Class Distribution', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Class distribution saved to {save_path}")

    return fig


def plot_missingness(
    df: pd.DataFrame,
    threshold: float = 0.75,
    figsize: Tuple[int, int] = (10, 5),
    save_path: Optional[str] = None
) -> Tuple[plt.Figure, pd.Series]:
    """
    Plot the distribution of per-column missing fractions.

    Args:
        df: Raw DataFrame
        threshold: Sparse-column cut-off to mark on the plot
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Tuple of (Figure, missing fraction per column)
    """
    fractions = missing_fraction(df)

    fig, ax = plt.subplots(figsize=figsize)
    sns.histplot(fractions.values, bins=20, ax=ax, alpha=0.7)
    ax.axvline(threshold, color='red', linestyle='--', linewidth=2,
               label=f'Drop threshold ({threshold:.0%})')

    n_sparse = int((fractions >= threshold).sum())
    ax.set_xlabel('Fraction of missing / empty cells')
    ax.set_ylabel('Number of columns')
    ax.set_title(f'Column Missingness ({n_sparse} of {len(fractions)} columns above threshold)',
                 fontsize=12, fontweight='bold')
    ax.legend()
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Missingness plot saved to {save_path}")

    return fig, fractions


def plot_correlation_matrix(
    df: pd.DataFrame,
    columns: Optional[List[str]] = None,
    method: str = 'pearson',
    figsize: Tuple[int, int] = (14, 12),
    save_path: Optional[str] = None
) -> Tuple[plt.Figure, pd.DataFrame]:
    """
    Create a correlation heatmap for the sensor columns.

    Args:
        df: DataFrame with numerical data
        columns: Columns to include (default: all numeric)
        method: Correlation method ('pearson', 'spearman', 'kendall')
        figsize: Figure size (width, height)
        save_path: Path to save the figure (optional)

    Returns:
        Tuple of (Figure, correlation matrix DataFrame)
    """
    if columns is None:
        columns = df.select_dtypes(include=[np.number]).columns.tolist()

    corr_matrix = df[columns].corr(method=method)

    fig, ax = plt.subplots(figsize=figsize)

    # Too many sensor columns to annotate each cell
    mask = np.triu(np.ones_like(corr_matrix, dtype=bool), k=1)
    sns.heatmap(
        corr_matrix,
        mask=mask,
        cmap='RdYlBu_r',
        center=0,
        square=True,
        linewidths=0.1,
        cbar_kws={"shrink": 0.8, "label": "Correlation"},
        ax=ax,
        vmin=-1,
        vmax=1
    )

    ax.set_title(f'Correlation Matrix ({method.capitalize()})',
                 fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Correlation matrix saved to {save_path}")

    return fig, corr_matrix


def plot_pca_variance(
    preprocessor: SensorPreprocessor,
    figsize: Tuple[int, int] = (12, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Plot explained variance per component and the cumulative curve.

    Args:
        preprocessor: Fitted SensorPreprocessor
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    ratios = preprocessor.explained_variance_ratio()
    cumulative = np.cumsum(ratios)
    x = np.arange(1, len(ratios) + 1)

    fig, ax = plt.subplots(figsize=figsize)
    ax.bar(x, ratios, alpha=0.7, label='Per component')
    ax.plot(x, cumulative, 'o-', color='darkorange', linewidth=2, label='Cumulative')
    ax.axhline(preprocessor.pca_variance, color='red', linestyle='--',
               label=f'Target ({preprocessor.pca_variance:.0%})')

    ax.set_xlabel('Principal component')
    ax.set_ylabel('Explained variance ratio')
    ax.set_ylim([0, 1.05])
    ax.set_title(f'PCA Explained Variance ({len(ratios)} components)',
                 fontsize=14, fontweight='bold')
    ax.legend(loc='center right')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"PCA variance plot saved to {save_path}")

    return fig


def plot_component_scatter(
    scores: pd.DataFrame,
    labels: pd.Series,
    figsize: Tuple[int, int] = (9, 7),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Scatter the first two principal components, coloured by class.

    Args:
        scores: Component scores (PC1, PC2, ...)
        labels: Class label per row
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=figsize)

    sns.scatterplot(
        x=scores['PC1'].values,
        y=scores['PC2'].values,
        hue=np.asarray(labels),
        s=8,
        alpha=0.5,
        ax=ax
    )

    ax.set_xlabel('PC1')
    ax.set_ylabel('PC2')
    ax.set_title('First Two Principal Components by Class', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Component scatter saved to {save_path}")

    return fig


def plot_component_distributions(
    scores: pd.DataFrame,
    n_components: int = 6,
    figsize: Tuple[int, int] = (14, 10),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Create distribution plots (histogram + KDE) for the leading components.

    Args:
        scores: Component scores
        n_components: Number of leading components to plot
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    columns = scores.columns[:n_components].tolist()
    n_cols = len(columns)
    n_rows = (n_cols + 1) // 2

    fig, axes = plt.subplots(n_rows, 2, figsize=figsize)
    axes = np.atleast_1d(axes).flatten()

    for idx, col in enumerate(columns):
        ax = axes[idx]

        sns.histplot(scores[col], kde=True, ax=ax, bins=50, alpha=0.7)

        # Normality test needs at least 8 observations
        if len(scores) >= 8:
            _, p_value = stats.normaltest(scores[col])
            normality = "Normal" if p_value > 0.05 else "Non-Normal"
            ax.set_title(f'{col} ({normality}, p={p_value:.3f})', fontsize=10, fontweight='bold')
        else:
            ax.set_title(col, fontsize=10, fontweight='bold')

    # Hide unused subplots
    for idx in range(len(columns), len(axes)):
        axes[idx].set_visible(False)

    plt.suptitle('Principal Component Distributions', fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"Component distributions saved to {save_path}")

    return fig


def generate_eda_report(
    df: pd.DataFrame,
    label_column: str = "classe",
    preprocessor: Optional[SensorPreprocessor] = None,
    sparse_threshold: float = 0.75,
    output_dir: str = "reports/figures/",
    show_plots: bool = False
) -> Dict[str, Any]:
    """
    Generate a complete EDA report with all visualizations.

    Component plots are only produced when a fitted preprocessor is given.

    Args:
        df: Raw training DataFrame
        label_column: Name of the class label column
        preprocessor: Fitted SensorPreprocessor (optional)
        sparse_threshold: Sparse-column cut-off to mark on the missingness plot
        output_dir: Directory to save figures
        show_plots: Whether to display plots interactively

    Returns:
        Dictionary containing EDA results and file paths
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    report = {
        "data_shape": df.shape,
        "figures": [],
        "class_counts": {},
        "n_sparse_columns": None,
        "correlation_matrix": None,
        "explained_variance": None
    }

    logger.info("=" * 60)
    logger.info("STARTING EXPLORATORY DATA ANALYSIS")
    logger.info("=" * 60)

    # 1. Class balance
    if label_column in df.columns:
        logger.info("Plotting class distribution...")
        plot_class_distribution(
            df, label_column,
            save_path=str(output_dir / "01_class_distribution.png")
        )
        report["figures"].append("01_class_distribution.png")
        counts = df[label_column].value_counts().sort_index()
        report["class_counts"] = {str(k): int(v) for k, v in counts.items()}

    # 2. Missingness
    logger.info("Analyzing missing values...")
    _, fractions = plot_missingness(
        df, threshold=sparse_threshold,
        save_path=str(output_dir / "02_missingness.png")
    )
    report["figures"].append("02_missingness.png")
    report["n_sparse_columns"] = int((fractions >= sparse_threshold).sum())

    if preprocessor is not None:
        # 3. Correlation of retained sensor columns
        logger.info("Computing correlation matrix...")
        _, corr_matrix = plot_correlation_matrix(
            df, columns=preprocessor.feature_columns,
            save_path=str(output_dir / "03_correlation_matrix.png")
        )
        report["figures"].append("03_correlation_matrix.png")
        report["correlation_matrix"] = corr_matrix.to_dict()

        # 4. PCA variance
        logger.info("Plotting PCA explained variance...")
        plot_pca_variance(
            preprocessor,
            save_path=str(output_dir / "04_pca_variance.png")
        )
        report["figures"].append("04_pca_variance.png")
        report["explained_variance"] = preprocessor.explained_variance_ratio().tolist()

        scores = preprocessor.transform(df)

        # 5. Component scatter
        if label_column in df.columns and scores.shape[1] >= 2:
            logger.info("Plotting component scatter...")
            plot_component_scatter(
                scores, df[label_column],
                save_path=str(output_dir / "05_component_scatter.png")
            )
            report["figures"].append("05_component_scatter.png")

        # 6. Component distributions
        logger.info("Plotting component distributions...")
        plot_component_distributions(
            scores,
            save_path=str(output_dir / "06_component_distributions.png")
        )
        report["figures"].append("06_component_distributions.png")

    if show_plots:
        plt.show()
    else:
        plt.close('all')

    logger.info("=" * 60)
    logger.info("EDA COMPLETE - All figures saved to: %s", output_dir)
    logger.info("=" * 60)

    return report


def print_correlation_insights(corr_matrix: pd.DataFrame, threshold: float = 0.9) -> None:
    """
    Print strongly correlated sensor pairs.

    Args:
        corr_matrix: Correlation matrix DataFrame
        threshold: Correlation threshold for "strong" correlation
    """
    print("\n" + "=" * 50)
    print("CORRELATION INSIGHTS")
    print("=" * 50)

    strong_corr = []
    for i in range(len(corr_matrix.columns)):
        for j in range(i + 1, len(corr_matrix.columns)):
            corr_val = corr_matrix.iloc[i, j]
            if abs(corr_val) >= threshold:
                strong_corr.append({
                    "col1": corr_matrix.columns[i],
                    "col2": corr_matrix.columns[j],
                    "correlation": corr_val
                })

    if strong_corr:
        print(f"\nStrong correlations (|r| >= {threshold}):")
        for item in sorted(strong_corr, key=lambda x: abs(x["correlation"]), reverse=True):
            direction = "positive" if item["correlation"] > 0 else "negative"
            print(f"  • {item['col1']} ↔ {item['col2']}: {item['correlation']:.3f} ({direction})")

        print("\nInterpretation:")
        print("  - Redundant sensor channels carry overlapping information")
        print("  - PCA folds them into fewer uncorrelated components")
    else:
        print(f"\nNo strong correlations found (|r| >= {threshold})")
        print("  - Sensor channels appear relatively independent")

    print("=" * 50 + "\n")
