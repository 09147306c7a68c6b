"""Attention-budget quota engine for followed feed sources."""

__version__ = "0.1.0"
