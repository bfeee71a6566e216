"""
FloodWatch — scheduled flood-likelihood relay.

Polls Open-Meteo for each registered location once a day, forwards the
7-day rainfall forecast to a prediction service, and raises a notification
when the returned likelihood passes the alert gate.
"""

__version__ = "1.0.0"
