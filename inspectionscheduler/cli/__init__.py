"""Command-line interface for inspectionscheduler."""
