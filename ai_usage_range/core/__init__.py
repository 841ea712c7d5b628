"""
Core modules for AI Usage Range.

This package contains log collection, parsing, aggregation, range
orchestration and response shaping.
"""
