"""
Test Suite for Prediction Module
=================================

Tests for holdout prediction and the exported answer files.
"""

import json

import pytest
import pandas as pd

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from exercise_quality.model import BaggedTreeModel
from exercise_quality.preprocessing import SensorPreprocessor
from exercise_quality.prediction import (
    predict_holdout,
    write_answer_files,
    generate_prediction_report,
    run_final_prediction,
)
from conftest import IDENTIFIER_COLUMNS


@pytest.fixture
def fitted(sensor_data):
    """Preprocessor and model fitted on the synthetic training table."""
    preprocessor = SensorPreprocessor(identifier_columns=IDENTIFIER_COLUMNS)
    scores = preprocessor.fit_transform(sensor_data)
    model = BaggedTreeModel(n_bags=3).fit(scores, sensor_data['classe'])
    return model, preprocessor


class TestPredictHoldout:
    """Tests for predict_holdout."""

    def test_one_prediction_per_row_in_order(self, fitted, holdout_data):
        """Test predictions follow the holdout row order."""
        model, preprocessor = fitted

        predictions = predict_holdout(model, preprocessor, holdout_data)

        assert list(predictions.columns) == ['problem_id', 'prediction', 'confidence']
        assert predictions['problem_id'].tolist() == list(range(1, 21))
        assert set(predictions['prediction']) <= {'A', 'B', 'C', 'D', 'E'}
        assert predictions['confidence'].between(0, 1).all()

    def test_matches_direct_prediction(self, fitted, holdout_data):
        """Test labels equal the model applied to the projected rows."""
        model, preprocessor = fitted

        predictions = predict_holdout(model, preprocessor, holdout_data)
        expected = model.predict(preprocessor.transform(holdout_data))

        assert predictions['prediction'].tolist() == list(expected)

    def test_missing_id_column_numbers_rows(self, fitted, holdout_data):
        """Test rows are numbered from 1 when the id column is absent."""
        model, preprocessor = fitted

        predictions = predict_holdout(model, preprocessor, holdout_data.drop(columns=['problem_id']))

        assert predictions['problem_id'].tolist() == list(range(1, 21))


class TestOutputs:
    """Tests for answer files and reports."""

    @pytest.fixture
    def predictions(self):
        """Hand-made prediction table."""
        return pd.DataFrame({
            'problem_id': [1, 2, 3],
            'prediction': ['B', 'A', 'B'],
            'confidence': [1.0, 0.6, 0.8]
        })

    def test_write_answer_files(self, predictions, tmp_path):
        """Test one file per row containing only the label."""
        paths = write_answer_files(predictions, str(tmp_path))

        assert len(paths) == 3
        assert (tmp_path / "problem_id_1.txt").read_text() == 'B'
        assert (tmp_path / "problem_id_2.txt").read_text() == 'A'

    def test_prediction_report(self, predictions, tmp_path):
        """Test report contents and the JSON file."""
        metrics = {'overall': {'accuracy': 0.9, 'out_of_sample_error': 0.1}}
        path = tmp_path / "report.json"

        report = generate_prediction_report(
            predictions, n_bags=7, metrics=metrics, output_path=str(path)
        )

        assert report['model'] == {'n_bags': 7, 'validation_accuracy': 0.9, 'out_of_sample_error': 0.1}
        assert report['summary']['class_counts'] == {'A': 1, 'B': 2}
        assert report['summary']['labels'] == ['B', 'A', 'B']

        saved = json.loads(path.read_text())
        assert saved['predictions'][0] == {'problem_id': 1, 'prediction': 'B', 'confidence': 1.0}


class TestRunFinalPrediction:
    """Tests for the complete prediction workflow."""

    def test_writes_all_outputs(self, fitted, holdout_data, tmp_path):
        """Test CSV, answer files and report are written."""
        model, preprocessor = fitted

        result = run_final_prediction(model, preprocessor, holdout_data, output_dir=str(tmp_path))

        assert Path(result['csv_path']).exists()
        assert Path(result['report_path']).exists()
        assert len(result['answer_files']) == 20

        exported = pd.read_csv(result['csv_path'])
        assert len(exported) == 20
        assert exported['prediction'].tolist() == result['predictions']['prediction'].tolist()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
