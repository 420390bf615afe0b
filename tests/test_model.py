"""
Test Suite for Model Module
============================

Tests for BaggedTreeModel, the bag-count sweep and best-count selection.
"""

import pytest
import numpy as np
import pandas as pd

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from exercise_quality.model import (
    BaggedTreeModel,
    train_model,
    sweep_bag_counts,
    select_best_bag_count,
)
from exercise_quality.preprocessing import preprocess_pipeline
from conftest import IDENTIFIER_COLUMNS


@pytest.fixture
def prep_result(sensor_data):
    """Preprocessed and split synthetic data."""
    return preprocess_pipeline(sensor_data, identifier_columns=IDENTIFIER_COLUMNS)


class TestBaggedTreeModel:
    """Tests for BaggedTreeModel class."""

    def test_init(self):
        """Test model initialization."""
        model = BaggedTreeModel(n_bags=7)

        assert model.n_bags == 7
        assert model.max_depth is None
        assert model._is_fitted == False

    def test_fit_builds_requested_bags(self, prep_result):
        """Test that the ensemble holds one tree per bag."""
        model = BaggedTreeModel(n_bags=4).fit(prep_result['X_train'], prep_result['y_train'])

        assert model._is_fitted == True
        assert len(model.model.estimators_) == 4
        assert list(model.classes_) == ['A', 'B', 'C', 'D', 'E']
        assert model.training_info['n_samples'] == 180

    def test_predict_labels_and_accuracy(self, prep_result):
        """Test predictions are known labels and beat chance."""
        model = BaggedTreeModel(n_bags=5).fit(prep_result['X_train'], prep_result['y_train'])
        predictions = model.predict(prep_result['X_val'])

        assert len(predictions) == len(prep_result['X_val'])
        assert set(predictions) <= {'A', 'B', 'C', 'D', 'E'}
        assert model.score(prep_result['X_val'], prep_result['y_val']) > 0.5

    def test_predict_proba_rows_sum_to_one(self, prep_result):
        """Test that vote shares form a distribution per row."""
        model = BaggedTreeModel(n_bags=3).fit(prep_result['X_train'], prep_result['y_train'])
        proba = model.predict_proba(prep_result['X_val'])

        assert proba.shape == (120, 5)
        np.testing.assert_array_almost_equal(proba.sum(axis=1), np.ones(120))

    def test_predict_before_fit(self, prep_result):
        """Test that predict raises error before fit."""
        with pytest.raises(ValueError, match="must be trained"):
            BaggedTreeModel().predict(prep_result['X_val'])

    def test_predict_wrong_feature_count(self, prep_result):
        """Test that a table with a different width is rejected."""
        model = BaggedTreeModel(n_bags=2).fit(prep_result['X_train'], prep_result['y_train'])

        with pytest.raises(ValueError, match="Expected"):
            model.predict(prep_result['X_val'].iloc[:, :-1])

    def test_same_seed_same_predictions(self, prep_result):
        """Test reproducibility for a fixed random state."""
        first = BaggedTreeModel(n_bags=3, random_state=0).fit(prep_result['X_train'], prep_result['y_train'])
        second = BaggedTreeModel(n_bags=3, random_state=0).fit(prep_result['X_train'], prep_result['y_train'])

        np.testing.assert_array_equal(
            first.predict(prep_result['X_val']),
            second.predict(prep_result['X_val'])
        )

    def test_save_load(self, prep_result, tmp_path):
        """Test saving and loading the model."""
        model = BaggedTreeModel(n_bags=3).fit(prep_result['X_train'], prep_result['y_train'])
        path = tmp_path / "models" / "model.joblib"

        model.save(str(path))
        loaded = BaggedTreeModel.load(str(path))

        assert loaded.n_bags == 3
        assert loaded.n_features_in_ == model.n_features_in_
        np.testing.assert_array_equal(
            loaded.predict(prep_result['X_val']),
            model.predict(prep_result['X_val'])
        )

    def test_save_untrained(self, tmp_path):
        """Test that an untrained model cannot be saved."""
        with pytest.raises(ValueError, match="untrained"):
            BaggedTreeModel().save(str(tmp_path / "model.joblib"))


class TestTrainModel:
    """Tests for train_model."""

    def test_config_values_applied(self, prep_result, config):
        """Test hyperparameters come from the model section."""
        config['model']['min_samples_leaf'] = 3

        model = train_model(prep_result['X_train'], prep_result['y_train'], config, n_bags=2)

        assert model.n_bags == 2
        assert model.min_samples_leaf == 3
        assert model.model.estimator.min_samples_leaf == 3

    def test_empty_config_defaults(self, prep_result):
        """Test that an empty config falls back to defaults."""
        model = train_model(prep_result['X_train'], prep_result['y_train'], {})

        assert model.n_bags == 5
        assert model._is_fitted == True


class TestSweep:
    """Tests for the bag-count sweep and selection."""

    def test_sweep_one_row_per_count(self, prep_result, config):
        """Test that every configured bag count is scored."""
        sweep = sweep_bag_counts(
            prep_result['X_train'], prep_result['y_train'],
            prep_result['X_val'], prep_result['y_val'],
            config
        )

        assert list(sweep.columns) == ['n_bags', 'accuracy', 'training_seconds']
        assert sweep['n_bags'].tolist() == [2, 3]
        assert sweep['accuracy'].between(0, 1).all()

    def test_sweep_explicit_counts(self, prep_result, config):
        """Test that explicit bag counts override the config."""
        sweep = sweep_bag_counts(
            prep_result['X_train'], prep_result['y_train'],
            prep_result['X_val'], prep_result['y_val'],
            config, bag_counts=[4]
        )

        assert sweep['n_bags'].tolist() == [4]

    def test_sweep_array_counts(self, prep_result, config):
        """Test that bag counts may be given as a NumPy array."""
        sweep = sweep_bag_counts(
            prep_result['X_train'], prep_result['y_train'],
            prep_result['X_val'], prep_result['y_val'],
            config, bag_counts=np.arange(2, 4)
        )

        assert sweep['n_bags'].tolist() == [2, 3]

    def test_sweep_empty_counts(self, prep_result, config):
        """Test that an empty sweep is rejected."""
        with pytest.raises(ValueError):
            sweep_bag_counts(
                prep_result['X_train'], prep_result['y_train'],
                prep_result['X_val'], prep_result['y_val'],
                config, bag_counts=[]
            )

    def test_select_best_highest_accuracy(self):
        """Test that the most accurate bag count wins."""
        sweep = pd.DataFrame({
            'n_bags': [5, 6, 7, 8, 9],
            'accuracy': [0.80, 0.84, 0.86, 0.85, 0.83],
            'training_seconds': [1.0] * 5
        })

        assert select_best_bag_count(sweep) == 7

    def test_select_best_tie_prefers_fewer_bags(self):
        """Test that ties go to the smaller ensemble."""
        sweep = pd.DataFrame({
            'n_bags': [5, 6, 7, 8, 9],
            'accuracy': [0.80, 0.86, 0.84, 0.86, 0.86],
            'training_seconds': [1.0] * 5
        })

        assert select_best_bag_count(sweep) == 6

    def test_select_best_empty(self):
        """Test that an empty sweep raises."""
        empty = pd.DataFrame(columns=['n_bags', 'accuracy', 'training_seconds'])

        with pytest.raises(ValueError, match="empty"):
            select_best_bag_count(empty)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
