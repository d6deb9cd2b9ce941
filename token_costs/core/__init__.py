"""
Core modules for token costs.

This package contains change detection, the change-log store, published
file generation and cost calculation.
"""
