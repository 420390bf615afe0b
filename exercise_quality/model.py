"""
Model Training Module
======================

Handles model training using a bagged ensemble of decision trees.

Features:
    - BaggingClassifier over DecisionTreeClassifier
    - Bag-count sweep scored on validation accuracy
    - Hyperparameter configuration via config file
    - Model persistence (save/load)
    - Training progress logging
"""

import logging
from pathlib import Path
from typing import Dict, Any, Optional, Sequence
from datetime import datetime

import numpy as np
import pandas as pd
import joblib
from sklearn.ensemble import BaggingClassifier
from sklearn.metrics import accuracy_score
from sklearn.tree import DecisionTreeClassifier

logger = logging.getLogger(__name__)

DEFAULT_BAG_COUNTS = [5, 6, 7, 8, 9]


class BaggedTreeModel:
    """
    Exercise quality classifier using bagged classification trees.

    Each tree is trained on a bootstrap resample of the training rows and the
    ensemble votes on the predicted class.
    """

    def __init__(
        self,
        n_bags: int = 5,
        max_depth: Optional[int] = None,
        min_samples_leaf: int = 1,
        random_state: int = 42,
        n_jobs: int = 1
    ):
        """
        Initialize the model with hyperparameters.

        Args:
            n_bags: Number of bootstrap resamples (trees) in the ensemble
            max_depth: Maximum depth of each tree (None grows until pure)
            min_samples_leaf: Minimum samples required in a leaf
            random_state: Random seed for reproducibility
            n_jobs: Number of parallel jobs used by the ensemble
        """
        self.n_bags = n_bags
        self.max_depth = max_depth
        self.min_samples_leaf = min_samples_leaf
        self.random_state = random_state
        self.n_jobs = n_jobs

        self.model: Optional[BaggingClassifier] = None
        self.n_features_in_: Optional[int] = None
        self.training_info: Dict[str, Any] = {}
        self._is_fitted = False

    def _create_estimator(self) -> BaggingClassifier:
        """Create the bagged tree ensemble."""
        tree = DecisionTreeClassifier(
            max_depth=self.max_depth,
            min_samples_leaf=self.min_samples_leaf,
            random_state=self.random_state
        )
        return BaggingClassifier(
            estimator=tree,
            n_estimators=self.n_bags,
            bootstrap=True,
            random_state=self.random_state,
            n_jobs=self.n_jobs
        )

    @property
    def classes_(self) -> np.ndarray:
        if not self._is_fitted:
            raise ValueError("Model must be trained first.")
        return self.model.classes_

    def fit(self, X, y) -> 'BaggedTreeModel':
        """
        Train the model on the provided data.

        Args:
            X: Feature table of shape (n_samples, n_features)
            y: Class labels of shape (n_samples,)

        Returns:
            Self for method chaining
        """
        start_time = datetime.now()

        logger.info("=" * 60)
        logger.info("STARTING MODEL TRAINING")
        logger.info("=" * 60)
        logger.info(f"Training data shape: X={X.shape}")
        logger.info(f"Hyperparameters:")
        logger.info(f"  - n_bags: {self.n_bags}")
        logger.info(f"  - max_depth: {self.max_depth}")
        logger.info(f"  - min_samples_leaf: {self.min_samples_leaf}")

        self.n_features_in_ = X.shape[1]

        self.model = self._create_estimator()
        self.model.fit(X, y)

        end_time = datetime.now()
        training_duration = (end_time - start_time).total_seconds()

        self.training_info = {
            'training_duration_seconds': training_duration,
            'n_samples': int(X.shape[0]),
            'n_features': int(X.shape[1]),
            'classes': [str(c) for c in self.model.classes_],
            'trained_at': end_time.isoformat(),
            'hyperparameters': {
                'n_bags': self.n_bags,
                'max_depth': self.max_depth,
                'min_samples_leaf': self.min_samples_leaf
            }
        }

        self._is_fitted = True

        logger.info("=" * 60)
        logger.info(f"MODEL TRAINING COMPLETE in {training_duration:.2f} seconds")
        logger.info("=" * 60)

        return self

    def _check_input(self, X) -> None:
        if not self._is_fitted:
            raise ValueError("Model must be trained before prediction. Call fit() first.")

        if X.shape[1] != self.n_features_in_:
            raise ValueError(
                f"Expected {self.n_features_in_} features, but got {X.shape[1]}"
            )

    def predict(self, X) -> np.ndarray:
        """
        Predict class labels.

        Args:
            X: Feature table of shape (n_samples, n_features)

        Returns:
            Array of predicted labels of shape (n_samples,)
        """
        self._check_input(X)
        return self.model.predict(X)

    def predict_proba(self, X) -> np.ndarray:
        """
        Predict class probabilities (share of tree votes).

        Args:
            X: Feature table of shape (n_samples, n_features)

        Returns:
            Array of shape (n_samples, n_classes), columns ordered as classes_
        """
        self._check_input(X)
        return self.model.predict_proba(X)

    def score(self, X, y) -> float:
        """Accuracy of the predictions on X against y."""
        return float(accuracy_score(y, self.predict(X)))

    def save(self, filepath: str) -> None:
        """
        Save the trained model to disk.

        Args:
            filepath: Path to save the model
        """
        if not self._is_fitted:
            raise ValueError("Cannot save untrained model.")

        state = {
            'model': self.model,
            'hyperparameters': {
                'n_bags': self.n_bags,
                'max_depth': self.max_depth,
                'min_samples_leaf': self.min_samples_leaf,
                'random_state': self.random_state,
                'n_jobs': self.n_jobs
            },
            'n_features_in_': self.n_features_in_,
            'training_info': self.training_info,
            '_is_fitted': self._is_fitted
        }

        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(state, filepath)
        logger.info(f"Model saved to {filepath}")

    @classmethod
    def load(cls, filepath: str) -> 'BaggedTreeModel':
        """
        Load a trained model from disk.

        Args:
            filepath: Path to the saved model

        Returns:
            Loaded BaggedTreeModel instance
        """
        state = joblib.load(filepath)

        model = cls(**state['hyperparameters'])
        model.model = state['model']
        model.n_features_in_ = state['n_features_in_']
        model.training_info = state['training_info']
        model._is_fitted = state['_is_fitted']

        logger.info(f"Model loaded from {filepath}")
        return model


def train_model(
    X_train,
    y_train,
    config: Dict[str, Any],
    n_bags: Optional[int] = None,
    save_path: Optional[str] = None
) -> BaggedTreeModel:
    """
    Train a model using configuration parameters.

    Args:
        X_train: Training features
        y_train: Training labels
        config: Configuration dictionary (reads the 'model' section)
        n_bags: Bag count; overrides the configured value
        save_path: Path to save the trained model (optional)

    Returns:
        Trained BaggedTreeModel
    """
    model_config = config.get('model', {})

    if n_bags is None:
        n_bags = model_config.get('n_bags', DEFAULT_BAG_COUNTS[0])

    model = BaggedTreeModel(
        n_bags=n_bags,
        max_depth=model_config.get('max_depth'),
        min_samples_leaf=model_config.get('min_samples_leaf', 1),
        random_state=model_config.get('random_state', 42),
        n_jobs=model_config.get('n_jobs', 1)
    )

    model.fit(X_train, y_train)

    if save_path:
        model.save(save_path)

    return model


def sweep_bag_counts(
    X_train,
    y_train,
    X_val,
    y_val,
    config: Dict[str, Any],
    bag_counts: Optional[Sequence[int]] = None
) -> pd.DataFrame:
    """
    Fit one ensemble per bag count and score it on the validation rows.

    Models are discarded after scoring; only the scores are kept.

    Args:
        X_train: Training features
        y_train: Training labels
        X_val: Validation features
        y_val: Validation labels
        config: Configuration dictionary
        bag_counts: Bag counts to try (default: model.bag_counts or 5..9)

    Returns:
        DataFrame with columns n_bags, accuracy, training_seconds
    """
    if bag_counts is None:
        bag_counts = config.get('model', {}).get('bag_counts', DEFAULT_BAG_COUNTS)

    if bag_counts is None or len(bag_counts) == 0:
        raise ValueError("At least one bag count is required for the sweep")

    logger.info(f"Sweeping bag counts: {list(bag_counts)}")

    rows = []
    for n_bags in bag_counts:
        model = train_model(X_train, y_train, config, n_bags=int(n_bags))
        accuracy = model.score(X_val, y_val)

        rows.append({
            'n_bags': int(n_bags),
            'accuracy': accuracy,
            'training_seconds': model.training_info['training_duration_seconds']
        })
        logger.info(f"  n_bags={n_bags}: validation accuracy {accuracy:.4f}")

    return pd.DataFrame(rows, columns=['n_bags', 'accuracy', 'training_seconds'])


def select_best_bag_count(sweep: pd.DataFrame) -> int:
    """
    Pick the bag count with the highest validation accuracy.

    Ties go to the smaller ensemble.

    Args:
        sweep: DataFrame from sweep_bag_counts

    Returns:
        Chosen bag count
    """
    if sweep.empty:
        raise ValueError("Bag-count sweep is empty")

    ranked = sweep.sort_values(['accuracy', 'n_bags'], ascending=[False, True])
    best = int(ranked.iloc[0]['n_bags'])

    logger.info(f"Selected n_bags={best} (accuracy {ranked.iloc[0]['accuracy']:.4f})")
    return best


def print_model_summary(model: BaggedTreeModel) -> None:
    """
    Print a summary of the trained model.

    Args:
        model: Trained model instance
    """
    print("\n" + "=" * 50)
    print("MODEL SUMMARY")
    print("=" * 50)
    print(f"Model Type: BaggingClassifier(DecisionTreeClassifier)")
    print(f"Classes: {list(model.training_info.get('classes', []))}")
    print(f"Number of input features: {model.n_features_in_}")
    print(f"\nHyperparameters:")
    print(f"  - n_bags: {model.n_bags}")
    print(f"  - max_depth: {model.max_depth}")
    print(f"  - min_samples_leaf: {model.min_samples_leaf}")

    if model.training_info:
        print(f"\nTraining Info:")
        print(f"  - Duration: {model.training_info.get('training_duration_seconds', 0.0):.2f}s")
        print(f"  - Samples: {model.training_info.get('n_samples', 'N/A')}")

    print("=" * 50 + "\n")


def print_sweep_summary(sweep: pd.DataFrame, best_n_bags: int) -> None:
    """
    Print the bag-count sweep as a table.

    Args:
        sweep: DataFrame from sweep_bag_counts
        best_n_bags: Chosen bag count
    """
    print("\n" + "=" * 50)
    print("BAG COUNT SWEEP")
    print("=" * 50)
    print(f"{'n_bags':<10} {'Accuracy':<12} {'Train (s)':<12}")
    print("-" * 50)

    for _, row in sweep.iterrows():
        marker = "  <- best" if int(row['n_bags']) == best_n_bags else ""
        print(f"{int(row['n_bags']):<10} {row['accuracy']:<12.4f} {row['training_seconds']:<12.2f}{marker}")

    print("=" * 50 + "\n")
