"""
CreditKit Core Module

This module contains the core business logic for CreditKit including:
- Calculation library for refrigerant impact, thermal control and reductions
- Declarative credit rule catalog loaded from YAML
- Rule evaluation with option and part strategies
- Consolidation of multi-document data with conflict resolution
- Recommendations and report assembly

The core module is framework-agnostic and can be used independently of
the CLI.

Example usage:
    from core.catalog import default_catalog
    from core.consolidate import consolidate
    from core.evaluate import evaluate_credit
    from core.recommend import generate_recommendations
"""

__version__ = "0.1.0"
__all__ = [
    "calculations",
    "catalog",
    "consolidate",
    "errors",
    "evaluate",
    "models",
    "policy",
    "recommend",
    "report",
]
