"""
prediction — External flood prediction service boundary.

Modules:
    schemas           — request / response models
    prediction_client — HTTP client for the prediction service
"""
