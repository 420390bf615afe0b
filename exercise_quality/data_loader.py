"""
Data Loader Module
==================

Handles CSV ingestion, validation, and basic data quality checks.

Functions:
    - load_config: Load YAML configuration file
    - load_data: Load CSV data with missing-value markers
    - validate_data: Check label and train/test column constraints
    - get_data_summary: Generate basic statistics
"""

import os
import logging
from pathlib import Path
from typing import Dict, Any, Optional, Tuple, List

import pandas as pd
import numpy as np
import yaml

logger = logging.getLogger(__name__)

# Markers the sensor exports use for empty or undefined cells
DEFAULT_NA_VALUES = ["", "NA", "#DIV/0!"]


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
    na_values: Optional[List[str]] = None,
    expected_columns: Optional[int] = None,
    index_col: Optional[int] = None
) -> pd.DataFrame:
    """
    Load a sensor CSV file, reading empty and undefined cells as missing.

    The course exports carry an unnamed leading row-number column; pass
    index_col=0 to read it as the index instead of as a data column.

    Args:
        file_path: Path to the CSV file
        na_values: Strings to treat as missing (default: "", "NA", "#DIV/0!")
        expected_columns: Expected number of columns (optional validation)
        index_col: Column to use as index (optional)

    Returns:
        DataFrame containing the loaded data

    Raises:
        FileNotFoundError: If data file doesn't exist
        ValueError: If the column count doesn't match
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Data file not found: {file_path}")

    if na_values is None:
        na_values = DEFAULT_NA_VALUES

    df = pd.read_csv(file_path, na_values=na_values, index_col=index_col, low_memory=False)
    logger.info(f"Loaded data from {file_path}: {df.shape[0]} rows × {df.shape[1]} columns")

    if expected_columns is not None and df.shape[1] != expected_columns:
        raise ValueError(
            f"Expected {expected_columns} columns, but found {df.shape[1]}. "
            f"Columns: {list(df.columns)}"
        )

    return df


def validate_data(
    df: pd.DataFrame,
    test_df: Optional[pd.DataFrame] = None,
    label_column: str = "classe",
    strict: bool = True
) -> Tuple[bool, Dict[str, Any]]:
    """
    Validate the training table (and optionally the holdout table).

    Checks:
        - Label column is present and has no missing values
        - At least two classes are present
        - No duplicate rows
        - Every training feature column also exists in the holdout table

    Args:
        df: Training DataFrame
        test_df: Holdout DataFrame (optional)
        label_column: Name of the class label column
        strict: If True, raise errors on validation failure

    Returns:
        Tuple of (is_valid, validation_report)
    """
    report = {
        "total_rows": len(df),
        "total_columns": len(df.columns),
        "label_column": label_column,
        "issues": []
    }

    # Check 1: Label column
    if label_column not in df.columns:
        issue = f"Label column '{label_column}' not found"
        report["issues"].append(issue)
        logger.warning(issue)
    else:
        missing_labels = int(df[label_column].isnull().sum())
        if missing_labels > 0:
            issue = f"Label column has {missing_labels} missing values"
            report["issues"].append(issue)
            logger.warning(issue)

        class_counts = df[label_column].value_counts().sort_index()
        report["class_counts"] = {str(k): int(v) for k, v in class_counts.items()}
        if len(class_counts) < 2:
            issue = f"Need at least 2 classes, found {len(class_counts)}"
            report["issues"].append(issue)
            logger.warning(issue)

    # Check 2: Duplicate rows
    duplicates = int(df.duplicated().sum())
    if duplicates > 0:
        issue = f"Duplicate rows found: {duplicates}"
        report["issues"].append(issue)
        logger.warning(issue)

    # Check 3: Holdout columns
    if test_df is not None:
        feature_columns = [c for c in df.columns if c != label_column]
        missing_in_test = [c for c in feature_columns if c not in test_df.columns]
        report["test_rows"] = len(test_df)
        if missing_in_test:
            issue = f"Columns missing from test data: {missing_in_test}"
            report["issues"].append(issue)
            report["missing_in_test"] = missing_in_test
            logger.warning(issue)

    is_valid = len(report["issues"]) == 0
    report["is_valid"] = is_valid

    if strict and not is_valid:
        raise ValueError(f"Data validation failed: {report['issues']}")

    return is_valid, report


def get_data_summary(df: pd.DataFrame, label_column: str = "classe") -> Dict[str, Any]:
    """
    Generate summary statistics for the dataset.

    Args:
        df: DataFrame to summarize
        label_column: Name of the class label column

    Returns:
        Dictionary containing summary statistics
    """
    missing_fraction = df.isnull().mean()

    summary = {
        "shape": df.shape,
        "n_numeric": int(len(df.select_dtypes(include=[np.number]).columns)),
        "n_non_numeric": int(len(df.select_dtypes(exclude=[np.number]).columns)),
        "memory_usage_mb": df.memory_usage(deep=True).sum() / 1024 / 1024,
        "n_complete_columns": int((missing_fraction == 0).sum()),
        "n_mostly_missing_columns": int((missing_fraction >= 0.75).sum()),
        "class_counts": {}
    }

    if label_column in df.columns:
        counts = df[label_column].value_counts().sort_index()
        summary["class_counts"] = {str(k): int(v) for k, v in counts.items()}

    return summary


def print_data_summary(df: pd.DataFrame, label_column: str = "classe") -> None:
    """
    Print a formatted summary of the dataset to console.

    Args:
        df: DataFrame to summarize
        label_column: Name of the class label column
    """
    summary = get_data_summary(df, label_column)

    print("\n" + "=" * 60)
    print("DATASET SUMMARY")
    print("=" * 60)
    print(f"Shape: {df.shape[0]} rows × {df.shape[1]} columns")
    print(f"Memory Usage: {summary['memory_usage_mb'] * 1024:.2f} KB")
    print(f"Numeric columns: {summary['n_numeric']}")
    print(f"Non-numeric columns: {summary['n_non_numeric']}")
    print(f"Complete columns: {summary['n_complete_columns']}")
    print(f"Columns >= 75% missing: {summary['n_mostly_missing_columns']}")

    if summary["class_counts"]:
        print("\nClass Distribution:")
        print("-" * 40)
        total = sum(summary["class_counts"].values())
        for label, count in summary["class_counts"].items():
            print(f"  {label}: {count} ({count / total * 100:.1f}%)")

    print("=" * 60 + "\n")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    try:
        config = load_config()
        print("Configuration loaded successfully!")
        print(f"PCA variance: {config['preprocessing']['pca_variance']}")
        print(f"Bag counts: {config['model']['bag_counts']}")
    except FileNotFoundError as e:
        print(f"Config not found: {e}")
        config = {}

    data_path = config.get('data', {}).get('train_path', "data/raw/pml-training.csv")
    if os.path.exists(data_path):
        df = load_data(data_path, index_col=config.get('data', {}).get('index_col'))
        print_data_summary(df)
        is_valid, report = validate_data(df, strict=False)
        print(f"Validation passed: {is_valid}")
    else:
        print(f"No data file found at {data_path}")
        print("Place pml-training.csv there to test the data loader.")
