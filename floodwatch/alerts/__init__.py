"""
alerts — Flood alert decision and delivery.

Sub-modules:
    models    — AlertPayload sent to the notification service
    gate      — the alert decision rule
    notifier  — HTTP delivery to the notification endpoint
"""
