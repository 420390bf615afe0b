"""
Exercise Quality Classifier
============================

A machine learning pipeline that classifies how a weight-lifting exercise was
performed (classes A-E) from on-body accelerometer, gyroscope and
magnetometer readings.

Modules:
    - data_loader: CSV ingestion and validation
    - eda: Exploratory Data Analysis
    - preprocessing: Column filtering, PCA projection and partitioning
    - model: Bagged decision-tree ensemble and bag-count sweep
    - evaluation: Confusion-matrix metrics and reports
    - prediction: Holdout inference and export
"""

__version__ = "1.0.0"
__author__ = "Exercise Quality Team"
