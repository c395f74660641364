"""Batch import of session log files."""
