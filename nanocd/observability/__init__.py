"""Logging and metrics for nanocd."""
