"""Logging and metrics emission for kubestats."""
