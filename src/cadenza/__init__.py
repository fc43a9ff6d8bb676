"""Cadenza: plugin configuration schemas and job compile/link pipeline."""

__version__ = "0.1.0"
