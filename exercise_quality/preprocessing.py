"""
Data Preprocessing Module
==========================

Handles column filtering, dimensionality reduction, and train/validation splitting.

Functions:
    - missing_fraction: Share of missing or blank cells per column
    - drop_sparse_columns: Remove mostly-empty columns
    - near_zero_variance: Frequency-ratio / percent-unique diagnostics
    - drop_near_zero_variance: Remove near-constant columns
    - drop_identifier_columns: Remove row id, subject and timestamp columns
    - stratified_split: Label-stratified train/validation split
"""

import logging
from pathlib import Path
from typing import Dict, Any, Tuple, Optional, List, Sequence, Union

import pandas as pd
import numpy as np
from sklearn.decomposition import PCA
from sklearn.model_selection import train_test_split
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler
import joblib

logger = logging.getLogger(__name__)

ColumnRef = Union[str, int]


def missing_fraction(df: pd.DataFrame) -> pd.Series:
    """
    Fraction of missing or empty cells in each column.

    Whitespace-only strings count as empty.

    Args:
        df: DataFrame to inspect

    Returns:
        Series indexed by column name with values in [0, 1]
    """
    if len(df) == 0:
        return pd.Series(0.0, index=df.columns)

    missing = df.isnull()
    for col in df.columns:
        if not pd.api.types.is_numeric_dtype(df[col]):
            blank = df[col].astype(str).str.strip().eq("")
            missing[col] = missing[col] | blank.fillna(False).astype(bool)

    return missing.mean()


def drop_sparse_columns(
    df: pd.DataFrame,
    threshold: float = 0.75
) -> Tuple[pd.DataFrame, List[str]]:
    """
    Drop columns where at least `threshold` of the cells are missing or empty.

    Args:
        df: Input DataFrame
        threshold: Missing fraction at or above which a column is dropped

    Returns:
        Tuple of (filtered DataFrame, dropped column names)
    """
    fractions = missing_fraction(df)
    dropped = fractions[fractions >= threshold].index.tolist()

    logger.info(
        f"Sparse filter (>= {threshold:.0%} missing): dropping {len(dropped)} of {df.shape[1]} columns"
    )
    return df.drop(columns=dropped), dropped


def near_zero_variance(
    df: pd.DataFrame,
    freq_cut: float = 95 / 5,
    unique_cut: float = 10.0
) -> pd.DataFrame:
    """
    Compute near-zero-variance diagnostics for every column.

    A column is flagged when it has a single distinct value, or when the most
    common value is more than `freq_cut` times as frequent as the second most
    common one and distinct values make up no more than `unique_cut` percent
    of the rows. Missing values are ignored when counting.

    Args:
        df: DataFrame to inspect
        freq_cut: Frequency ratio cut-off
        unique_cut: Percent-unique cut-off

    Returns:
        DataFrame indexed by column with freq_ratio, percent_unique,
        zero_var and nzv
    """
    n_rows = len(df)
    records = []

    for col in df.columns:
        counts = df[col].value_counts(dropna=True)
        n_unique = len(counts)

        if n_unique <= 1:
            freq_ratio = 0.0
        else:
            freq_ratio = float(counts.iloc[0] / counts.iloc[1])

        percent_unique = 100.0 * n_unique / n_rows if n_rows else 0.0
        zero_var = n_unique <= 1

        records.append({
            "column": col,
            "freq_ratio": freq_ratio,
            "percent_unique": percent_unique,
            "zero_var": zero_var,
            "nzv": bool(zero_var or (freq_ratio > freq_cut and percent_unique <= unique_cut))
        })

    metrics = pd.DataFrame.from_records(
        records, columns=["column", "freq_ratio", "percent_unique", "zero_var", "nzv"]
    )
    return metrics.set_index("column")


def drop_near_zero_variance(
    df: pd.DataFrame,
    freq_cut: float = 95 / 5,
    unique_cut: float = 10.0,
    exclude: Optional[Sequence[str]] = None
) -> Tuple[pd.DataFrame, List[str]]:
    """
    Drop near-zero-variance columns.

    Args:
        df: Input DataFrame
        freq_cut: Frequency ratio cut-off
        unique_cut: Percent-unique cut-off
        exclude: Columns that are never dropped (e.g. the label)

    Returns:
        Tuple of (filtered DataFrame, dropped column names)
    """
    exclude = set(exclude or [])
    candidates = [c for c in df.columns if c not in exclude]

    metrics = near_zero_variance(df[candidates], freq_cut=freq_cut, unique_cut=unique_cut)
    dropped = metrics.index[metrics["nzv"]].tolist()

    logger.info(f"Near-zero-variance filter: dropping {len(dropped)} columns {dropped}")
    return df.drop(columns=dropped), dropped


def drop_identifier_columns(
    df: pd.DataFrame,
    columns: Sequence[ColumnRef]
) -> Tuple[pd.DataFrame, List[str]]:
    """
    Drop identifier and timestamp columns by name or zero-based position.

    Positions refer to the column order of `df` as passed in.

    Args:
        df: Input DataFrame
        columns: Column names and/or integer positions

    Returns:
        Tuple of (filtered DataFrame, dropped column names)

    Raises:
        IndexError: If a position is outside the table
    """
    dropped: List[str] = []

    for ref in columns:
        if isinstance(ref, (int, np.integer)) and not isinstance(ref, bool):
            if ref < 0 or ref >= df.shape[1]:
                raise IndexError(
                    f"Column position {ref} out of range for table with {df.shape[1]} columns"
                )
            name = df.columns[ref]
        elif ref in df.columns:
            name = ref
        else:
            logger.warning(f"Identifier column '{ref}' not found; skipping")
            continue

        if name not in dropped:
            dropped.append(name)

    logger.info(f"Dropping identifier columns: {dropped}")
    return df.drop(columns=dropped), dropped


class SensorPreprocessor:
    """
    Column filtering and PCA projection for the exercise sensor tables.

    Fitted on the training table; the same columns and projection are then
    applied to any other table (validation rows, holdout rows).
    """

    def __init__(
        self,
        label_column: str = "classe",
        sparse_threshold: float = 0.75,
        freq_cut: float = 95 / 5,
        unique_cut: float = 10.0,
        identifier_columns: Optional[Sequence[ColumnRef]] = None,
        pca_variance: float = 0.90,
        random_state: int = 42
    ):
        """
        Initialize the preprocessor.

        Args:
            label_column: Name of the class label column
            sparse_threshold: Missing fraction at or above which a column is dropped
            freq_cut: Near-zero-variance frequency ratio cut-off
            unique_cut: Near-zero-variance percent-unique cut-off
            identifier_columns: Names or positions of id/timestamp columns to drop
            pca_variance: Fraction of variance the principal components must retain
            random_state: Random seed for the PCA solver
        """
        self.label_column = label_column
        self.sparse_threshold = sparse_threshold
        self.freq_cut = freq_cut
        self.unique_cut = unique_cut
        self.identifier_columns = list(identifier_columns or [])
        self.pca_variance = pca_variance
        self.random_state = random_state

        self.pipeline: Optional[Pipeline] = None
        self.feature_columns: Optional[List[str]] = None
        self.dropped_columns: Dict[str, List[str]] = {}
        self.n_components: Optional[int] = None
        self._is_fitted = False

    def clean(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Apply the sparse, near-zero-variance and identifier filters in order.

        Records the dropped columns of each step in `dropped_columns`.

        Args:
            df: Raw training DataFrame

        Returns:
            Filtered DataFrame (label column kept)
        """
        cleaned, sparse = drop_sparse_columns(df, threshold=self.sparse_threshold)
        cleaned, nzv = drop_near_zero_variance(
            cleaned,
            freq_cut=self.freq_cut,
            unique_cut=self.unique_cut,
            exclude=[self.label_column]
        )
        cleaned, identifiers = drop_identifier_columns(cleaned, self.identifier_columns)

        self.dropped_columns = {
            'sparse': sparse,
            'near_zero_variance': nzv,
            'identifier': identifiers
        }
        return cleaned

    def fit(self, df: pd.DataFrame) -> 'SensorPreprocessor':
        """
        Fit the preprocessor to the training table.

        Args:
            df: Raw training DataFrame

        Returns:
            Self for method chaining
        """
        cleaned = self.clean(df)
        features = cleaned.drop(columns=[self.label_column], errors='ignore')

        numeric = features.select_dtypes(include=[np.number]).columns.tolist()
        non_numeric = [c for c in features.columns if c not in numeric]
        if non_numeric:
            logger.warning(f"Ignoring non-numeric columns: {non_numeric}")
        self.dropped_columns['non_numeric'] = non_numeric

        if not numeric:
            raise ValueError("No numeric feature columns left after filtering")

        self.feature_columns = numeric
        X = self._feature_matrix(df)

        # A float n_components must lie in (0, 1); keep every component otherwise
        n_components = self.pca_variance if self.pca_variance < 1 else None
        self.pipeline = Pipeline([
            ('scaler', StandardScaler()),
            ('pca', PCA(n_components=n_components, svd_solver='full', random_state=self.random_state))
        ])
        self.pipeline.fit(X)
        self.n_components = int(self.pipeline.named_steps['pca'].n_components_)

        logger.info(
            f"Fitted StandardScaler + PCA on {len(self.feature_columns)} features: "
            f"{self.n_components} components retain "
            f"{self.explained_variance_ratio().sum():.2%} of the variance"
        )

        self._is_fitted = True
        return self

    def _feature_matrix(self, df: pd.DataFrame) -> np.ndarray:
        """Select the fitted feature columns as a float matrix."""
        missing = [c for c in self.feature_columns if c not in df.columns]
        if missing:
            raise ValueError(f"Input is missing {len(missing)} fitted columns: {missing}")

        data = df[self.feature_columns].astype(float)

        na_columns = data.columns[data.isnull().any()].tolist()
        if na_columns:
            raise ValueError(f"Missing values in retained columns: {na_columns}")

        return data.values

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Project a table onto the fitted principal components.

        Args:
            df: DataFrame containing at least the fitted feature columns

        Returns:
            DataFrame of component scores (PC1..PCk), same index as `df`
        """
        if not self._is_fitted:
            raise ValueError("Preprocessor must be fitted before transform. Call fit() first.")

        scores = self.pipeline.transform(self._feature_matrix(df))
        return pd.DataFrame(scores, columns=self.get_feature_names(), index=df.index)

    def fit_transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Fit and transform in one step.

        Args:
            df: Raw training DataFrame

        Returns:
            DataFrame of component scores
        """
        self.fit(df)
        return self.transform(df)

    def get_feature_names(self) -> List[str]:
        """
        Names of the principal-component columns.

        Returns:
            List of names in format 'PC1'..'PCk'
        """
        if self.n_components is None:
            raise ValueError("Preprocessor must be fitted first.")

        return [f"PC{i + 1}" for i in range(self.n_components)]

    def explained_variance_ratio(self) -> np.ndarray:
        """Variance fraction explained by each retained component."""
        if self.pipeline is None:
            raise ValueError("Preprocessor must be fitted first.")
        return self.pipeline.named_steps['pca'].explained_variance_ratio_

    def save(self, filepath: str) -> None:
        """
        Save the preprocessor state to disk.

        Args:
            filepath: Path to save the preprocessor
        """
        state = {
            'label_column': self.label_column,
            'sparse_threshold': self.sparse_threshold,
            'freq_cut': self.freq_cut,
            'unique_cut': self.unique_cut,
            'identifier_columns': self.identifier_columns,
            'pca_variance': self.pca_variance,
            'random_state': self.random_state,
            'pipeline': self.pipeline,
            'feature_columns': self.feature_columns,
            'dropped_columns': self.dropped_columns,
            'n_components': self.n_components,
            '_is_fitted': self._is_fitted
        }
        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(state, filepath)
        logger.info(f"Preprocessor saved to {filepath}")

    @classmethod
    def load(cls, filepath: str) -> 'SensorPreprocessor':
        """
        Load a preprocessor from disk.

        Args:
            filepath: Path to the saved preprocessor

        Returns:
            Loaded SensorPreprocessor instance
        """
        state = joblib.load(filepath)

        preprocessor = cls(
            label_column=state['label_column'],
            sparse_threshold=state['sparse_threshold'],
            freq_cut=state['freq_cut'],
            unique_cut=state['unique_cut'],
            identifier_columns=state['identifier_columns'],
            pca_variance=state['pca_variance'],
            random_state=state['random_state']
        )
        preprocessor.pipeline = state['pipeline']
        preprocessor.feature_columns = state['feature_columns']
        preprocessor.dropped_columns = state['dropped_columns']
        preprocessor.n_components = state['n_components']
        preprocessor._is_fitted = state['_is_fitted']

        logger.info(f"Preprocessor loaded from {filepath}")
        return preprocessor


def stratified_split(
    X: pd.DataFrame,
    y: pd.Series,
    train_fraction: float = 0.6,
    random_state: int = 42
) -> Tuple[pd.DataFrame, pd.DataFrame, pd.Series, pd.Series]:
    """
    Split rows into training and validation sets, stratified by label.

    Args:
        X: Feature table
        y: Class labels
        train_fraction: Fraction of rows for training
        random_state: Random seed

    Returns:
        Tuple of (X_train, X_val, y_train, y_val)
    """
    X_train, X_val, y_train, y_val = train_test_split(
        X, y,
        train_size=train_fraction,
        random_state=random_state,
        stratify=y
    )

    logger.info(
        f"Train/Validation split: {len(X_train)} train samples, {len(X_val)} validation samples"
    )

    return X_train, X_val, y_train, y_val


def preprocess_pipeline(
    df: pd.DataFrame,
    label_column: str = "classe",
    sparse_threshold: float = 0.75,
    freq_cut: float = 95 / 5,
    unique_cut: float = 10.0,
    identifier_columns: Optional[Sequence[ColumnRef]] = None,
    pca_variance: float = 0.90,
    train_fraction: float = 0.6,
    random_state: int = 42,
    save_preprocessor: Optional[str] = None
) -> Dict[str, Any]:
    """
    Complete preprocessing pipeline for the training table.

    The projection is fitted on every training row; the split happens on the
    component scores.

    Args:
        df: Raw training DataFrame
        label_column: Name of the class label column
        sparse_threshold: Missing fraction at or above which a column is dropped
        freq_cut: Near-zero-variance frequency ratio cut-off
        unique_cut: Near-zero-variance percent-unique cut-off
        identifier_columns: Names or positions of id/timestamp columns to drop
        pca_variance: Fraction of variance to retain
        train_fraction: Fraction of rows used for training
        random_state: Random seed for PCA and the split
        save_preprocessor: Path to save the fitted preprocessor

    Returns:
        Dictionary containing:
            - X_train, X_val, y_train, y_val: Split datasets
            - X_full, y_full: All component scores and labels
            - preprocessor: Fitted SensorPreprocessor
            - feature_names: Names of the component columns
            - dropped_columns: Columns removed by each filter
    """
    logger.info("=" * 60)
    logger.info("STARTING DATA PREPROCESSING")
    logger.info("=" * 60)

    if label_column not in df.columns:
        raise ValueError(f"Label column '{label_column}' not found in training data")

    preprocessor = SensorPreprocessor(
        label_column=label_column,
        sparse_threshold=sparse_threshold,
        freq_cut=freq_cut,
        unique_cut=unique_cut,
        identifier_columns=identifier_columns,
        pca_variance=pca_variance,
        random_state=random_state
    )

    X_full = preprocessor.fit_transform(df)
    y_full = df[label_column].astype(str)

    X_train, X_val, y_train, y_val = stratified_split(
        X_full, y_full,
        train_fraction=train_fraction,
        random_state=random_state
    )

    if save_preprocessor:
        preprocessor.save(save_preprocessor)

    result = {
        'X_train': X_train,
        'X_val': X_val,
        'y_train': y_train,
        'y_val': y_val,
        'X_full': X_full,
        'y_full': y_full,
        'preprocessor': preprocessor,
        'feature_names': preprocessor.get_feature_names(),
        'dropped_columns': preprocessor.dropped_columns
    }

    logger.info("=" * 60)
    logger.info("PREPROCESSING COMPLETE")
    logger.info(f"  Retained sensor columns: {len(preprocessor.feature_columns)}")
    logger.info(f"  Principal components: {preprocessor.n_components}")
    logger.info(f"  Training samples: {len(X_train)}")
    logger.info(f"  Validation samples: {len(X_val)}")
    logger.info("=" * 60)

    return result


def print_preprocessing_summary(result: Dict[str, Any]) -> None:
    """
    Print a summary of the preprocessing results.

    Args:
        result: Dictionary from preprocess_pipeline
    """
    preprocessor = result['preprocessor']
    dropped = result['dropped_columns']

    print("\n" + "=" * 50)
    print("PREPROCESSING SUMMARY")
    print("=" * 50)
    print(f"Sparse columns dropped: {len(dropped.get('sparse', []))}")
    print(f"Near-zero-variance columns dropped: {len(dropped.get('near_zero_variance', []))}")
    print(f"Identifier columns dropped: {len(dropped.get('identifier', []))}")
    print(f"Retained sensor columns: {len(preprocessor.feature_columns)}")
    print(f"\nPrincipal components: {preprocessor.n_components}")
    print(f"Variance retained: {preprocessor.explained_variance_ratio().sum():.2%} "
          f"(target {preprocessor.pca_variance:.0%})")
    print(f"\nTraining samples: {result['X_train'].shape[0]}")
    print(f"Validation samples: {result['X_val'].shape[0]}")
    print("=" * 50 + "\n")
