"""
Test Suite for Data Loader Module
==================================

Tests for configuration loading, CSV ingestion and validation.
"""

import pytest
import numpy as np
import pandas as pd

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from exercise_quality.data_loader import (
    load_config,
    load_data,
    validate_data,
    get_data_summary,
)
from conftest import make_sensor_frame, write_r_export


class TestLoadConfig:
    """Tests for load_config."""

    def test_load_config(self, tmp_path):
        """Test reading a YAML file into a dictionary."""
        path = tmp_path / "config.yaml"
        path.write_text("model:\n  bag_counts: [5, 6, 7]\n")

        config = load_config(str(path))

        assert config['model']['bag_counts'] == [5, 6, 7]

    def test_empty_config(self, tmp_path):
        """Test that an empty file yields an empty dictionary."""
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_config(str(path)) == {}

    def test_missing_config(self, tmp_path):
        """Test that a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))


class TestLoadData:
    """Tests for load_data."""

    def test_missing_markers_become_nan(self, tmp_path):
        """Test that blank, NA and #DIV/0! cells load as missing."""
        path = tmp_path / "train.csv"
        path.write_text(
            "roll_belt,kurtosis_roll_belt,classe\n"
            "1.5,#DIV/0!,A\n"
            "2.5,,B\n"
            "3.5,NA,C\n"
            "4.5,0.25,D\n"
        )

        df = load_data(str(path))

        assert df.shape == (4, 3)
        assert df['kurtosis_roll_belt'].isnull().sum() == 3
        assert df['kurtosis_roll_belt'].dtype == np.float64
        assert df.loc[3, 'kurtosis_roll_belt'] == 0.25

    def test_unnamed_row_number_column_as_index(self, tmp_path):
        """Test that the empty-header row-number column becomes the index."""
        path = tmp_path / "pml-training.csv"
        write_r_export(make_sensor_frame(10), path)

        raw = load_data(str(path))
        df = load_data(str(path), index_col=0)

        assert raw.columns[0] == 'Unnamed: 0'
        assert 'Unnamed: 0' not in df.columns
        assert 'X' not in df.columns
        assert df.columns[0] == 'user_name'
        assert df.index.tolist() == list(range(1, 11))

    def test_expected_columns_mismatch(self, tmp_path):
        """Test that a wrong column count raises ValueError."""
        path = tmp_path / "train.csv"
        path.write_text("a,b\n1,2\n")

        with pytest.raises(ValueError, match="Expected 3 columns"):
            load_data(str(path), expected_columns=3)

    def test_missing_file(self, tmp_path):
        """Test that a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_data(str(tmp_path / "missing.csv"))


class TestValidateData:
    """Tests for validate_data."""

    def test_valid_tables(self, sensor_data, holdout_data):
        """Test that well-formed training and holdout tables pass."""
        is_valid, report = validate_data(sensor_data, holdout_data)

        assert is_valid == True
        assert report['class_counts'] == {'A': 60, 'B': 60, 'C': 60, 'D': 60, 'E': 60}
        assert report['test_rows'] == 20

    def test_missing_label_strict(self, sensor_data):
        """Test that a missing label column raises in strict mode."""
        with pytest.raises(ValueError, match="validation failed"):
            validate_data(sensor_data.drop(columns=['classe']))

    def test_missing_label_lenient(self, sensor_data):
        """Test that a missing label column is reported in lenient mode."""
        is_valid, report = validate_data(sensor_data.drop(columns=['classe']), strict=False)

        assert is_valid == False
        assert any('not found' in issue for issue in report['issues'])

    def test_single_class(self, sensor_data):
        """Test that a single-class table is flagged."""
        df = sensor_data.copy()
        df['classe'] = 'A'

        is_valid, report = validate_data(df, strict=False)

        assert is_valid == False
        assert any('at least 2 classes' in issue for issue in report['issues'])

    def test_columns_missing_from_holdout(self, sensor_data, holdout_data):
        """Test that holdout tables lacking training columns are flagged."""
        holdout = holdout_data.drop(columns=['roll_belt', 'yaw_belt'])

        is_valid, report = validate_data(sensor_data, holdout, strict=False)

        assert is_valid == False
        assert set(report['missing_in_test']) == {'roll_belt', 'yaw_belt'}


class TestDataSummary:
    """Tests for get_data_summary."""

    def test_summary(self, sensor_data):
        """Test summary counts on the synthetic table."""
        summary = get_data_summary(sensor_data)

        assert summary['shape'] == (300, sensor_data.shape[1])
        assert summary['class_counts']['A'] == 60
        # kurtosis_roll_belt and var_accel_arm
        assert summary['n_mostly_missing_columns'] == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
