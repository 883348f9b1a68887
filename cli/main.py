"""
CreditKit CLI Main Module

Command-line interface for CreditKit using Typer.
Provides one command per pipeline step plus the combined assessment.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from core.catalog import default_catalog
from core.consolidate import consolidate as consolidate_documents
from core.errors import CreditKitError, InvalidInputError
from core.evaluate import evaluate_credit
from core.logging import setup_logging
from core.models import AssessmentResult
from core.report import assess_credit, build_credit_report, format_assessment_report

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="creditkit",
    help="CreditKit - Green building credit consolidation and assessment",
    add_completion=False
)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level (default: CREDITKIT_LOG_LEVEL)"),
    log_format: Optional[str] = typer.Option(None, "--log-format", help="json or text (default: CREDITKIT_LOG_FORMAT)")
) -> None:
    """Configure logging before any command runs."""
    setup_logging(level=log_level, format_type=log_format)


def _load_json(path: Path, what: str) -> Any:
    if not path.exists():
        raise InvalidInputError(f"{what} file not found: {path}")
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidInputError(f"{what} file {path} is not valid JSON: {e}")


def _build_policy(strategy: Optional[str], priorities: Optional[Path],
                  manual: Optional[Path]) -> Dict[str, Any]:
    policy: Dict[str, Any] = {}
    if strategy:
        policy["strategy"] = strategy
    if priorities:
        policy["priorities"] = _load_json(priorities, "Priorities")
    if manual:
        policy["manualChoices"] = _load_json(manual, "Manual choices")
    return policy


def _write(text: str, output: Optional[Path]) -> None:
    if output:
        with open(output, 'w', encoding='utf-8') as f:
            f.write(text + "\n")
        typer.echo(f"Report saved to: {output}")
    else:
        typer.echo(text)


def _emit(data: Any, output: Optional[Path]) -> None:
    _write(json.dumps(data, indent=2, default=str), output)


def _fail(error: CreditKitError) -> None:
    typer.echo(f"Error: {error}", err=True)
    for issue in getattr(error, 'issues', None) or []:
        typer.echo(f"  - {issue}", err=True)
    raise typer.Exit(1)


@app.command()
def credits() -> None:
    """
    List the credits in the rule catalog.
    """
    try:
        catalog = default_catalog()
    except CreditKitError as e:
        _fail(e)

    typer.echo("Available credits:")
    for definition in catalog:
        typer.echo(
            f"  {definition.credit_id:8} {definition.strategy.value:8} "
            f"max {definition.max_points:>2}  {definition.name}"
        )


@app.command()
def evaluate(
    credit_id: str = typer.Argument(..., help="Credit identifier, e.g. EACr6"),
    params: Path = typer.Option(..., "--params", "-p", help="JSON object of parameter name to value"),
    units: Optional[str] = typer.Option(None, "--units", "-u", help="IP or SI (default: CREDITKIT_UNIT_SYSTEM)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the result (JSON or text) to this file"),
    text: bool = typer.Option(False, "--text", help="Print the plain-text report instead of JSON")
) -> None:
    """
    Evaluate one credit against a flat parameter map.

    Exits with code 1 on unknown credits or unreadable input; a failed
    credit is a normal result, not an error.
    """
    try:
        parameters = _load_json(params, "Parameters")
        if not isinstance(parameters, dict):
            raise InvalidInputError("Parameters file must contain a JSON object")
        definition = default_catalog().get(credit_id)
        result: AssessmentResult = evaluate_credit(definition, parameters, units)
    except CreditKitError as e:
        _fail(e)

    if text:
        _write(format_assessment_report(result), output)
    else:
        _emit(build_credit_report(result), output)


@app.command()
def consolidate(
    credit_id: str = typer.Argument(..., help="Credit identifier, e.g. EACr6"),
    documents: Path = typer.Option(..., "--documents", "-d", help="Documents JSON (object or list of {label, credits})"),
    strategy: Optional[str] = typer.Option(None, "--strategy", "-s", help="priority, latest or manual"),
    priorities: Optional[Path] = typer.Option(None, "--priorities", help="JSON object of document label to priority"),
    manual: Optional[Path] = typer.Option(None, "--manual", help="JSON object of parameter to chosen document"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the dataset JSON to this file")
) -> None:
    """
    Merge document values for one credit and resolve conflicts.
    """
    try:
        docs = _load_json(documents, "Documents")
        policy = _build_policy(strategy, priorities, manual)
        dataset = consolidate_documents(docs, credit_id, policy, catalog=default_catalog())
    except CreditKitError as e:
        _fail(e)

    for issue in dataset.structural_errors:
        typer.echo(f"Warning: {issue.document}: {issue.message}", err=True)
    _emit(dataset.model_dump(mode="json"), output)


@app.command()
def assess(
    credit_id: str = typer.Argument(..., help="Credit identifier, e.g. EACr6"),
    documents: Path = typer.Option(..., "--documents", "-d", help="Documents JSON (object or list of {label, credits})"),
    strategy: Optional[str] = typer.Option(None, "--strategy", "-s", help="priority, latest or manual"),
    priorities: Optional[Path] = typer.Option(None, "--priorities", help="JSON object of document label to priority"),
    manual: Optional[Path] = typer.Option(None, "--manual", help="JSON object of parameter to chosen document"),
    units: Optional[str] = typer.Option(None, "--units", "-u", help="IP or SI (default: CREDITKIT_UNIT_SYSTEM)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the report (JSON or text) to this file"),
    text: bool = typer.Option(False, "--text", help="Print the plain-text report and recommendations")
) -> None:
    """
    Consolidate documents, evaluate the credit and print recommendations.
    """
    try:
        docs = _load_json(documents, "Documents")
        policy = _build_policy(strategy, priorities, manual)
        report = assess_credit(docs, credit_id, policy=policy, unit_system=units)
    except CreditKitError as e:
        _fail(e)

    if not text:
        _emit(report, output)
        return

    result = AssessmentResult.model_validate(report["assessment"])
    lines = [format_assessment_report(result)]
    if report["recommendations"]:
        lines.append("Recommendations:")
        for rec in report["recommendations"]:
            lines.append(f"  [{rec['priority'].upper()}] {rec['message']}")
            lines.append(f"      -> {rec['action']}")
    _write("\n".join(lines), output)


if __name__ == "__main__":
    app()
