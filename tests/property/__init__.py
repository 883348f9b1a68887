"""
Property-based tests for CreditKit calculations and evaluation.

This package contains Hypothesis-based property tests that verify
numeric and award invariants across randomly generated parameters.
"""
