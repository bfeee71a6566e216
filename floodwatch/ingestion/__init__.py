"""
ingestion — Upstream weather data.

Modules:
    forecast_client — Open-Meteo daily precipitation forecast
"""
