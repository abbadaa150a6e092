"""Relational e-commerce store schema with trigger-maintained order totals."""

__version__ = "0.1.0"
