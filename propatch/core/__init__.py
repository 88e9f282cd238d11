"""
Core components of propatch.

This package contains the descriptor schema, targets, conflict ledger,
patch/toggle/registry implementation and the reporting and configuration
helpers built on top of them.
"""

__all__ = []
