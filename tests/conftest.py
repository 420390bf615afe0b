"""
Shared fixtures: synthetic tables shaped like the exercise sensor exports.
"""

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

SENSOR_COLUMNS = [
    'roll_belt', 'pitch_belt', 'yaw_belt',
    'total_accel_belt', 'gyros_arm_x', 'accel_arm_y',
    'magnet_dumbbell_z', 'roll_forearm', 'pitch_forearm'
]

IDENTIFIER_COLUMNS = [
    'X', 'user_name', 'raw_timestamp_part_1',
    'raw_timestamp_part_2', 'cvtd_timestamp', 'num_window'
]


def make_sensor_frame(n_rows: int, seed: int = 42, with_label: bool = True) -> pd.DataFrame:
    """Build a table with identifiers, sparse, near-constant and sensor columns."""
    rng = np.random.default_rng(seed)
    rows = np.arange(n_rows)
    class_idx = rows % 5

    # Three latent movement factors shifted by class
    latent = rng.normal(size=(n_rows, 3)) + class_idx[:, None] * np.array([3.0, -2.0, 1.0])
    window_start = rows % 50 == 0

    data = {
        'X': rows + 1,
        'user_name': rng.choice(['adelmo', 'carlitos', 'charles', 'eurico', 'jeremy', 'pedro'], n_rows),
        'raw_timestamp_part_1': 1323084000 + rows,
        'raw_timestamp_part_2': rng.integers(0, 999999, n_rows),
        'cvtd_timestamp': np.where(rows < n_rows // 2, '05/12/2011 11:23', '05/12/2011 11:24'),
        'new_window': np.where(window_start, 'yes', 'no'),
        'num_window': rows // 10 + 1,
        'kurtosis_roll_belt': np.where(window_start, rng.normal(size=n_rows), np.nan),
        'skewness_yaw_belt': np.where(window_start, '0.5', ''),
        'var_accel_arm': np.where(rows % 4 == 0, rng.normal(size=n_rows), np.nan),
        'stable_sensor': np.where(rows % 100 == 1, 1.0, 0.0),
        'constant_sensor': np.ones(n_rows),
    }

    for i, name in enumerate(SENSOR_COLUMNS):
        data[name] = latent[:, i % 3] * (1 + 0.1 * i) + rng.normal(scale=0.3, size=n_rows)

    df = pd.DataFrame(data)
    if with_label:
        df['classe'] = np.array(list('ABCDE'))[class_idx]
    return df


def write_r_export(df: pd.DataFrame, path) -> None:
    """Write a table the way the course CSVs were exported: row numbers under an empty header."""
    df.set_index('X').to_csv(path, index_label="")


@pytest.fixture
def sensor_data():
    """Training-like table: 300 rows, 60 per class."""
    return make_sensor_frame(300)


@pytest.fixture
def holdout_data():
    """Holdout-like table: 20 rows identified by problem_id."""
    df = make_sensor_frame(20, seed=7, with_label=False)
    df['problem_id'] = np.arange(1, 21)
    return df


@pytest.fixture
def config():
    """Minimal configuration dictionary."""
    return {
        'preprocessing': {
            'identifier_columns': IDENTIFIER_COLUMNS,
            'pca_variance': 0.90,
            'train_fraction': 0.6,
            'random_state': 42
        },
        'model': {
            'bag_counts': [2, 3],
            'max_depth': None,
            'min_samples_leaf': 1,
            'random_state': 42,
            'n_jobs': 1
        }
    }
