#!/usr/bin/env python3
"""
Exercise Quality Classifier - Main Pipeline
=============================================

Orchestrates the complete ML pipeline for classifying weight-lifting
exercise quality from wearable sensor readings.

Phases:
    1. Preprocessing - Column filtering, PCA and 60/40 stratified split
    2. EDA - Class balance, missingness and component plots
    3. Sweep - Bagged tree ensembles for bag counts 5..9
    4. Evaluation - Final model on validation rows
    5. Prediction - Labels for the holdout rows

Usage:
    # Run complete pipeline
    python main.py --train data/raw/pml-training.csv --test data/raw/pml-testing.csv

    # Run specific phase
    python main.py --phase sweep

    # Run with custom config
    python main.py --config config/config.yaml
"""

import argparse
import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, Optional

import pandas as pd

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from exercise_quality.data_loader import load_config, load_data, validate_data, print_data_summary
from exercise_quality.eda import generate_eda_report, print_correlation_insights
from exercise_quality.preprocessing import preprocess_pipeline, print_preprocessing_summary
from exercise_quality.model import (
    train_model, sweep_bag_counts, select_best_bag_count,
    print_model_summary, print_sweep_summary, BaggedTreeModel
)
from exercise_quality.evaluation import evaluate_model, print_evaluation_report
from exercise_quality.prediction import run_final_prediction, print_prediction_results


PHASES = ['eda', 'preprocess', 'sweep', 'evaluate', 'predict', 'all']


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the pipeline."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(f'pipeline_{datetime.now().strftime("%Y%m%d_%H%M%S")}.log')
        ]
    )


def run_preprocessing(
    df: pd.DataFrame,
    config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Execute Phase 1: Data Preprocessing.

    Args:
        df: Raw training data
        config: Configuration dictionary

    Returns:
        Preprocessing result dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 1: DATA PREPROCESSING")
    print("=" * 70)

    prep_config = config.get('preprocessing', {})

    result = preprocess_pipeline(
        df,
        label_column=config.get('data', {}).get('label_column', 'classe'),
        sparse_threshold=prep_config.get('sparse_threshold', 0.75),
        freq_cut=prep_config.get('freq_cut', 95 / 5),
        unique_cut=prep_config.get('unique_cut', 10.0),
        identifier_columns=prep_config.get('identifier_columns', []),
        pca_variance=prep_config.get('pca_variance', 0.90),
        train_fraction=prep_config.get('train_fraction', 0.6),
        random_state=prep_config.get('random_state', 42),
        save_preprocessor=config.get('output', {}).get('preprocessor_path')
    )

    print_preprocessing_summary(result)

    return result


def run_eda(
    df: pd.DataFrame,
    config: Dict[str, Any],
    prep_result: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Execute Phase 2: Exploratory Data Analysis.

    Args:
        df: Raw training data
        config: Configuration dictionary
        prep_result: Preprocessing result; enables the PCA figures

    Returns:
        EDA report dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 2: EXPLORATORY DATA ANALYSIS")
    print("=" * 70)

    output_dir = config.get('output', {}).get('figures_path', 'reports/figures/')
    preprocessor = prep_result['preprocessor'] if prep_result else None

    report = generate_eda_report(
        df,
        label_column=config.get('data', {}).get('label_column', 'classe'),
        preprocessor=preprocessor,
        sparse_threshold=config.get('preprocessing', {}).get('sparse_threshold', 0.75),
        output_dir=output_dir,
        show_plots=False
    )

    if report["correlation_matrix"] is not None:
        print_correlation_insights(pd.DataFrame(report["correlation_matrix"]))

    print(f"\n✓ EDA complete. {len(report['figures'])} figures saved to {output_dir}")

    return report


def run_sweep(
    prep_result: Dict[str, Any],
    config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Execute Phase 3: Bag-count sweep.

    Args:
        prep_result: Preprocessing result dictionary
        config: Configuration dictionary

    Returns:
        Dictionary with the sweep table and the chosen bag count
    """
    print("\n" + "=" * 70)
    print("PHASE 3: BAG COUNT SWEEP")
    print("=" * 70)

    sweep = sweep_bag_counts(
        prep_result['X_train'], prep_result['y_train'],
        prep_result['X_val'], prep_result['y_val'],
        config
    )
    best_n_bags = select_best_bag_count(sweep)

    print_sweep_summary(sweep, best_n_bags)

    return {'sweep': sweep, 'best_n_bags': best_n_bags}


def run_final_model(
    prep_result: Dict[str, Any],
    sweep_result: Dict[str, Any],
    config: Dict[str, Any]
) -> BaggedTreeModel:
    """
    Refit the ensemble with the chosen bag count.

    Uses the training partition unless model.refit_on_full_data is set.

    Args:
        prep_result: Preprocessing result dictionary
        sweep_result: Result of run_sweep
        config: Configuration dictionary

    Returns:
        Trained model
    """
    model_config = config.get('model', {})
    model_path = config.get('output', {}).get('model_path', 'models/bagged_trees.joblib')

    if model_config.get('refit_on_full_data', False):
        X, y = prep_result['X_full'], prep_result['y_full']
    else:
        X, y = prep_result['X_train'], prep_result['y_train']

    print(f"Refitting final model with {sweep_result['best_n_bags']} bags on {len(X)} samples...")

    model = train_model(
        X, y, config,
        n_bags=sweep_result['best_n_bags'],
        save_path=model_path
    )

    print_model_summary(model)

    return model


def run_evaluation(
    model: BaggedTreeModel,
    prep_result: Dict[str, Any],
    sweep_result: Dict[str, Any],
    config: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Execute Phase 4: Model Evaluation.

    Args:
        model: Final trained model
        prep_result: Preprocessing result dictionary
        sweep_result: Result of run_sweep
        config: Configuration dictionary

    Returns:
        Evaluation result dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 4: MODEL EVALUATION")
    print("=" * 70)

    y_pred = model.predict(prep_result['X_val'])

    output_dir = config.get('output', {}).get('reports_path', 'reports/')

    result = evaluate_model(
        prep_result['y_val'],
        y_pred,
        labels=[str(c) for c in model.classes_],
        sweep=sweep_result['sweep'],
        best_n_bags=sweep_result['best_n_bags'],
        output_dir=output_dir,
        show_plots=False
    )

    print_evaluation_report(result['metrics'])

    return result


def run_final_prediction_phase(
    test_df: pd.DataFrame,
    model: BaggedTreeModel,
    prep_result: Dict[str, Any],
    config: Dict[str, Any],
    eval_result: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Execute Phase 5: Final Prediction.

    Args:
        test_df: Raw holdout data
        model: Final trained model
        prep_result: Preprocessing result dictionary
        config: Configuration dictionary
        eval_result: Evaluation result with metrics

    Returns:
        Prediction result dictionary
    """
    print("\n" + "=" * 70)
    print("PHASE 5: FINAL PREDICTION")
    print("=" * 70)

    data_config = config.get('data', {})

    result = run_final_prediction(
        model=model,
        preprocessor=prep_result['preprocessor'],
        test_df=test_df,
        id_column=data_config.get('id_column', 'problem_id'),
        metrics=eval_result['metrics'] if eval_result else None,
        output_dir=data_config.get('predictions_path', 'data/predictions/')
    )

    print_prediction_results(result)

    return result


def _load_inputs(config: Dict[str, Any], with_test: bool = True):
    data_config = config.get('data', {})
    na_values = data_config.get('na_values')
    index_col = data_config.get('index_col')
    label_column = data_config.get('label_column', 'classe')

    print("\n📊 Loading data...")
    df = load_data(data_config['train_path'], na_values=na_values, index_col=index_col)
    print_data_summary(df, label_column)

    test_df = None
    if with_test:
        test_df = load_data(data_config['test_path'], na_values=na_values, index_col=index_col)

    is_valid, _ = validate_data(df, test_df, label_column=label_column, strict=False)
    if not is_valid:
        print("⚠️  Data validation warnings detected. Proceeding anyway...")

    return df, test_df


def run_full_pipeline(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Execute the complete 5-phase pipeline.

    Args:
        config: Configuration dictionary (data paths already resolved)

    Returns:
        Dictionary containing all phase results
    """
    print("\n" + "=" * 70)
    print("EXERCISE QUALITY PIPELINE")
    print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70)

    df, test_df = _load_inputs(config)

    results = {
        'config': config,
        'data_shape': df.shape,
        'test_shape': test_df.shape
    }

    # Phase 1: Preprocessing
    results['preprocessing'] = run_preprocessing(df, config)

    # Phase 2: EDA
    results['eda'] = run_eda(df, config, results['preprocessing'])

    # Phase 3: Sweep
    results['sweep'] = run_sweep(results['preprocessing'], config)

    # Phase 4: Final model and evaluation
    results['model'] = run_final_model(results['preprocessing'], results['sweep'], config)
    results['evaluation'] = run_evaluation(
        results['model'],
        results['preprocessing'],
        results['sweep'],
        config
    )

    # Phase 5: Final Prediction
    results['prediction'] = run_final_prediction_phase(
        test_df, results['model'], results['preprocessing'], config, results['evaluation']
    )

    print("\n" + "=" * 70)
    print("PIPELINE COMPLETE")
    print("=" * 70)
    print(f"  • Training data: {df.shape[0]} rows × {df.shape[1]} columns")
    print(f"  • Principal components: {results['preprocessing']['preprocessor'].n_components}")
    print(f"  • Bags: {results['sweep']['best_n_bags']}")
    print(f"  • Validation accuracy: {results['evaluation']['metrics']['overall']['accuracy']:.4f}")
    print(f"  • Output: {results['prediction']['csv_path']}")
    print(f"Completed at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70 + "\n")

    return results


def run_single_phase(phase: str, config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Execute a single phase of the pipeline (and the phases it depends on).

    Args:
        phase: Phase to run ('eda', 'preprocess', 'sweep', 'evaluate', 'predict')
        config: Configuration dictionary (data paths already resolved)

    Returns:
        Phase result dictionary
    """
    if phase == 'predict':
        return run_full_pipeline(config)

    if phase not in PHASES:
        raise ValueError(f"Unknown phase: {phase}. Choose from: {', '.join(PHASES)}")

    df, _ = _load_inputs(config, with_test=False)
    prep_result = run_preprocessing(df, config)

    if phase == 'preprocess':
        return prep_result

    elif phase == 'eda':
        return run_eda(df, config, prep_result)

    sweep_result = run_sweep(prep_result, config)

    if phase == 'sweep':
        return sweep_result

    model = run_final_model(prep_result, sweep_result, config)
    return run_evaluation(model, prep_result, sweep_result, config)


def main():
    """Main entry point with argument parsing."""
    parser = argparse.ArgumentParser(
        description="Exercise Quality Classifier for Wearable Sensor Data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py
  python main.py --train data/raw/pml-training.csv --test data/raw/pml-testing.csv
  python main.py --phase sweep
  python main.py --config config/custom.yaml
        """
    )

    parser.add_argument(
        '--train', '-t',
        type=str,
        default=None,
        help='Path to the training CSV file (default: data.train_path from config)'
    )

    parser.add_argument(
        '--test', '-s',
        type=str,
        default=None,
        help='Path to the holdout CSV file (default: data.test_path from config)'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default='config/config.yaml',
        help='Path to configuration file (default: config/config.yaml)'
    )

    parser.add_argument(
        '--phase', '-p',
        type=str,
        choices=PHASES,
        default='all',
        help='Phase to run (default: all)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    args = parser.parse_args()

    if not Path(args.config).exists():
        print(f"Error: Config file not found: {args.config}")
        return 1

    config = load_config(args.config)
    data_config = config.setdefault('data', {})
    data_config.setdefault('train_path', 'data/raw/pml-training.csv')
    data_config.setdefault('test_path', 'data/raw/pml-testing.csv')
    if args.train:
        data_config['train_path'] = args.train
    if args.test:
        data_config['test_path'] = args.test

    needed = ['train_path'] if args.phase in ('eda', 'preprocess', 'sweep', 'evaluate') else ['train_path', 'test_path']
    for key in needed:
        if not Path(data_config[key]).exists():
            print(f"Error: Data file not found: {data_config[key]}")
            print("\nPlace pml-training.csv and pml-testing.csv in the configured location.")
            return 1

    level = 'DEBUG' if args.verbose else config.get('logging', {}).get('level', 'INFO')
    setup_logging(level)

    try:
        if args.phase == 'all':
            run_full_pipeline(config)
        else:
            run_single_phase(args.phase, config)

        return 0

    except Exception as e:
        logging.error(f"Pipeline failed: {e}", exc_info=True)
        print(f"\n❌ Pipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
