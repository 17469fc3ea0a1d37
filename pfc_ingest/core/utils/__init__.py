"""Logging setup and value/date normalisation helpers."""
