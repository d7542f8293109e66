"""
Concurrency helpers shared across SchemaBundle components.

Exposes :func:`create_executor`, the single place where worker pools for
IO-bound bundle work are constructed.
"""

from .executors import create_executor

__all__ = ["create_executor"]
