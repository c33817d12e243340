"""Durable single-flight batch-scan job manager."""

__version__ = "0.1.0"
