"""
Monthly Sales Forecasting
=========================

A machine learning pipeline forecasting next-month aggregate sales per
country (or product) from monthly aggregate statistics.

Modules:
    - schema: Record types and ordered field bindings
    - data_loader: Configuration, CSV ingestion and validation
    - preprocessing: Feature encoding (numeric fields + one-hot unit key)
    - model: Gradient-boosted Poisson regressor training
    - evaluation: k-fold cross-validation and metrics
    - model_store: Artifact persistence
    - prediction: Inference on new records
    - reporting: Console output and label-scale conversion
"""

__version__ = "1.0.0"
__author__ = "Predictive Analytics Team"
