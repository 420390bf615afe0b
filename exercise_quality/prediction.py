"""
Prediction Module
==================

Handles final label prediction for the holdout rows.

Features:
    - Project the holdout table with the fitted PCA and predict classes
    - Vote share of the predicted class per row
    - Export predictions to CSV and one answer file per problem
    - Prediction report generation
"""

import logging
import json
from pathlib import Path
from typing import Dict, Any, List, Optional
from datetime import datetime

import numpy as np
import pandas as pd

from .model import BaggedTreeModel
from .preprocessing import SensorPreprocessor

logger = logging.getLogger(__name__)


def predict_holdout(
    model: BaggedTreeModel,
    preprocessor: SensorPreprocessor,
    test_df: pd.DataFrame,
    id_column: str = "problem_id"
) -> pd.DataFrame:
    """
    Predict the class of every holdout row.

    Args:
        model: Trained ensemble
        preprocessor: Preprocessor fitted on the training table
        test_df: Raw holdout DataFrame
        id_column: Column identifying each holdout row

    Returns:
        DataFrame with columns id_column, prediction, confidence in the
        row order of test_df
    """
    scores = preprocessor.transform(test_df)

    labels = model.predict(scores)
    confidence = model.predict_proba(scores).max(axis=1)

    if id_column in test_df.columns:
        ids = test_df[id_column].values
    else:
        logger.warning(f"Column '{id_column}' not found; numbering rows from 1")
        ids = np.arange(1, len(test_df) + 1)

    return pd.DataFrame({
        id_column: ids,
        'prediction': labels,
        'confidence': confidence
    })


def export_predictions(
    predictions: pd.DataFrame,
    output_path: str,
    filename: str = "predictions.csv"
) -> str:
    """
    Export predictions to CSV file.

    Args:
        predictions: DataFrame from predict_holdout
        output_path: Directory to save the file
        filename: Name of the CSV file

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.mkdir(parents=True, exist_ok=True)

    filepath = output_path / filename
    predictions.to_csv(filepath, index=False)

    logger.info(f"Predictions exported to {filepath}")
    return str(filepath)


def write_answer_files(
    predictions: pd.DataFrame,
    output_path: str,
    id_column: str = "problem_id"
) -> List[str]:
    """
    Write one text file per holdout row containing only its predicted label.

    Files are named problem_id_<id>.txt.

    Args:
        predictions: DataFrame from predict_holdout
        output_path: Directory for the answer files
        id_column: Column identifying each holdout row

    Returns:
        Paths of the written files, in row order
    """
    output_path = Path(output_path)
    output_path.mkdir(parents=True, exist_ok=True)

    paths = []
    for row_id, label in zip(predictions[id_column], predictions['prediction']):
        filepath = output_path / f"problem_id_{row_id}.txt"
        filepath.write_text(str(label))
        paths.append(str(filepath))

    logger.info(f"Wrote {len(paths)} answer files to {output_path}")
    return paths


def generate_prediction_report(
    predictions: pd.DataFrame,
    id_column: str = "problem_id",
    n_bags: Optional[int] = None,
    metrics: Optional[Dict[str, Any]] = None,
    output_path: Optional[str] = None
) -> Dict[str, Any]:
    """
    Generate a prediction report.

    Args:
        predictions: DataFrame from predict_holdout
        id_column: Column identifying each holdout row
        n_bags: Bag count of the final model (optional)
        metrics: Validation metrics from evaluation (optional)
        output_path: Path to save the report (optional)

    Returns:
        Report dictionary
    """
    report = {
        'generated_at': datetime.now().isoformat(),
        'model': {'n_bags': n_bags},
        'predictions': [],
        'summary': {}
    }

    if metrics and 'overall' in metrics:
        report['model']['validation_accuracy'] = metrics['overall']['accuracy']
        report['model']['out_of_sample_error'] = metrics['overall']['out_of_sample_error']

    for row_id, label, confidence in zip(
        predictions[id_column], predictions['prediction'], predictions['confidence']
    ):
        report['predictions'].append({
            id_column: row_id.item() if hasattr(row_id, 'item') else row_id,
            'prediction': str(label),
            'confidence': float(confidence)
        })

    counts = predictions['prediction'].astype(str).value_counts().sort_index()
    report['summary'] = {
        'n_predictions': int(len(predictions)),
        'class_counts': {k: int(v) for k, v in counts.items()},
        'labels': predictions['prediction'].astype(str).tolist()
    }

    if output_path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w') as f:
            json.dump(report, f, indent=2)
        logger.info(f"Prediction report saved to {output_path}")

    return report


def run_final_prediction(
    model: BaggedTreeModel,
    preprocessor: SensorPreprocessor,
    test_df: pd.DataFrame,
    id_column: str = "problem_id",
    metrics: Optional[Dict[str, Any]] = None,
    output_dir: str = "data/predictions/"
) -> Dict[str, Any]:
    """
    Execute the complete holdout prediction workflow.

    This function:
    1. Projects the holdout rows with the training PCA
    2. Predicts their classes
    3. Exports the CSV, answer files and JSON report

    Args:
        model: Final trained model
        preprocessor: Fitted preprocessor
        test_df: Raw holdout DataFrame
        id_column: Column identifying each holdout row
        metrics: Validation metrics
        output_dir: Directory for output files

    Returns:
        Dictionary containing predictions and file paths
    """
    logger.info("=" * 60)
    logger.info("STARTING FINAL PREDICTION")
    logger.info("=" * 60)

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    logger.info(f"Predicting {len(test_df)} holdout rows with {model.n_bags} bags...")
    predictions = predict_holdout(model, preprocessor, test_df, id_column)

    csv_path = export_predictions(predictions, str(output_dir))
    answer_files = write_answer_files(predictions, str(output_dir / "answers"), id_column)

    report_path = output_dir / "prediction_report.json"
    report = generate_prediction_report(
        predictions, id_column, model.n_bags, metrics,
        output_path=str(report_path)
    )

    result = {
        'predictions': predictions,
        'id_column': id_column,
        'csv_path': csv_path,
        'answer_files': answer_files,
        'report_path': str(report_path),
        'report': report
    }

    logger.info("=" * 60)
    logger.info("PREDICTION COMPLETE")
    logger.info(f"  Labels: {' '.join(report['summary']['labels'])}")
    logger.info(f"  Output: {csv_path}")
    logger.info("=" * 60)

    return result


def print_prediction_results(result: Dict[str, Any]) -> None:
    """
    Print formatted prediction results to console.

    Args:
        result: Result dictionary from run_final_prediction
    """
    predictions = result['predictions']
    id_column = result['id_column']

    print("\n" + "=" * 50)
    print(f"HOLDOUT PREDICTIONS ({len(predictions)} rows)")
    print("=" * 50)
    print(f"{id_column:<15} {'Prediction':<12} {'Vote share':<12}")
    print("-" * 50)

    for _, row in predictions.iterrows():
        print(f"{str(row[id_column]):<15} {str(row['prediction']):<12} {row['confidence']:<12.2f}")

    print("-" * 50)
    print(f"\nLabels: {' '.join(predictions['prediction'].astype(str))}")
    print(f"\nPredictions exported to: {result['csv_path']}")
    print(f"Answer files: {len(result['answer_files'])} written")
    print(f"Full report saved to: {result['report_path']}")
    print("=" * 50 + "\n")
