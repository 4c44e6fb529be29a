"""
Audit utilities for allocation CSVs (run with python -m tier_allocator.utils.<name>).
"""
