"""
Observability module for devxp.

This module provides:
- Metrics collection with Prometheus
"""

__all__ = ["metrics"]
