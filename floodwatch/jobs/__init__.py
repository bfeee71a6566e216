"""
jobs — Scheduled work.

Modules:
    report        — per-run outcome records
    orchestrator  — the daily batch over all registered locations
    keep_alive    — self-ping used to keep the host awake
    scheduler     — APScheduler wiring for both triggers
"""
