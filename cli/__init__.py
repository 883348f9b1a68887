"""
CreditKit CLI Module

This module contains the command-line interface for CreditKit using Typer.

Available commands:
- credits: List the credits in the rule catalog
- evaluate: Evaluate a credit against a flat parameter map
- consolidate: Merge document values and resolve conflicts
- assess: Consolidate, evaluate and recommend in one step

Example usage:
    from cli.main import app as cli_app

    # Or use directly from command line:
    # creditkit evaluate EACr6 --params params.json --units IP
    # creditkit assess EACr6 --documents documents.json --strategy latest
"""

__version__ = "0.1.0"
