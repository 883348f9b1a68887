"""
CreditKit Data Consolidator

Merges the per-credit parameter values of several extracted documents into
one ConsolidatedDataset. Documents are processed in an explicit order (a list
of SourceDocument, or a mapping whose insertion order is taken as-is).

Merging and resolving are separate steps:
- merge_documents records the first non-empty value of each declared
  parameter and registers a Conflict whenever a later document supplies the
  same parameter again (even with an identical value)
- resolve_conflicts applies a policy (priority, latest or manual) to the
  recorded conflicts without re-reading any document

Example usage:
    from core.consolidate import consolidate

    dataset = consolidate({
        "Equipment Schedule": {"EACr6": {"declaredParameters": ["GWP"], "values": {"GWP": 675}}},
        "Email Thread": {"EACr6": {"declaredParameters": ["GWP"], "values": {"GWP": 700}}},
    }, "EACr6", {"strategy": "priority"})
    print(dataset.values["GWP"], dataset.resolution_log[0].method)
"""

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from core.calculations import is_empty
from core.errors import DocumentNotFoundError, InvalidInputError, StructuralError
from core.logging import log_with_context
from core.models import (
    Conflict,
    ConflictCandidate,
    ConsolidatedDataset,
    ConsolidationPolicy,
    CreditEntry,
    ResolutionLogEntry,
    ResolutionStrategy,
    SourceDocument,
    StructuralIssue,
)
from core.policy import (
    DEFAULT_DOCUMENT_PRIORITIES,
    get_default_document_priority,
    get_default_resolution_strategy,
)

logger = logging.getLogger(__name__)

METHOD_PRIORITY = "priority-based"
METHOD_LATEST = "latest"
METHOD_MANUAL = "manual"
METHOD_FIRST_OCCURRENCE = "first-occurrence"

DocumentsInput = Union[Mapping[str, Mapping[str, Any]], Sequence[Union[SourceDocument, Mapping[str, Any]]]]
PolicyInput = Union[ConsolidationPolicy, Mapping[str, Any], str, None]

_LABEL_SEPARATORS = re.compile(r"[\s_\-]+")


def normalize_label(label: str) -> str:
    """Lowercase a document label and collapse spaces, underscores and dashes."""
    return _LABEL_SEPARATORS.sub(" ", label.strip().lower())


def normalize_documents(documents: DocumentsInput) -> List[SourceDocument]:
    """
    Turn the accepted document shapes into an ordered list.

    Raises:
        StructuralError: If the collection or any document is malformed
    """
    ordered, issues = _read_documents(documents)
    if issues:
        raise StructuralError(
            f"{len(issues)} document(s) could not be read",
            issues=[issue.model_dump() for issue in issues],
        )
    return ordered


def _read_documents(documents: DocumentsInput) -> Tuple[List[SourceDocument], List[StructuralIssue]]:
    if documents is None:
        raise StructuralError("Documents are required")

    if isinstance(documents, Mapping):
        items = [{"label": label, "credits": credits} for label, credits in documents.items()]
    elif isinstance(documents, (list, tuple)):
        items = list(documents)
    else:
        raise StructuralError(
            f"Documents must be a mapping or a list, got {type(documents).__name__}"
        )

    normalized: List[SourceDocument] = []
    issues: List[StructuralIssue] = []
    seen = set()

    for position, item in enumerate(items):
        if isinstance(item, SourceDocument):
            document = item
        else:
            try:
                document = SourceDocument.model_validate(item)
            except ValidationError:
                label = item.get("label") if isinstance(item, Mapping) else None
                issues.append(StructuralIssue(
                    document=str(label or f"#{position}"),
                    message="Document must have a label and a credits object",
                ))
                continue

        if document.label in seen:
            issues.append(StructuralIssue(
                document=document.label,
                message=f"Duplicate document label '{document.label}'",
            ))
            continue
        seen.add(document.label)
        normalized.append(document)

    return normalized, issues


def _parse_entry(document: SourceDocument, credit_id: str) -> Tuple[Optional[CreditEntry], Optional[StructuralIssue]]:
    if credit_id not in document.credits:
        return None, None

    raw = document.credits[credit_id]
    if not isinstance(raw, Mapping):
        return None, StructuralIssue(
            document=document.label,
            credit_id=credit_id,
            message="Credit entry must be an object with declaredParameters and values",
        )

    try:
        return CreditEntry.model_validate(raw), None
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        return None, StructuralIssue(
            document=document.label,
            credit_id=credit_id,
            message=f"Malformed credit entry ({', '.join(fields)})",
        )


def validate_documents(documents: DocumentsInput, credit_id: Optional[str] = None) -> List[StructuralIssue]:
    """
    Check document shape without consolidating.

    Each document must either omit a credit or supply both a declared
    parameter list and a values object for it.

    Args:
        documents: Documents in processing order
        credit_id: Only check this credit; all credits when None

    Returns:
        List of structural issues, empty when every document conforms

    Raises:
        StructuralError: If the collection itself is malformed
    """
    ordered, issues = _read_documents(documents)
    for document in ordered:
        targets = [credit_id] if credit_id else list(document.credits.keys())
        for target in targets:
            _, issue = _parse_entry(document, target)
            if issue is not None:
                issues.append(issue)
    return issues


def merge_documents(documents: DocumentsInput, credit_id: str) -> ConsolidatedDataset:
    """
    Merge documents for one credit, leaving conflicts unresolved.

    The first non-empty value of a declared parameter is recorded together
    with its source document. Every later document supplying the same
    parameter extends that parameter's Conflict in arrival order.

    Raises:
        StructuralError: If the collection itself is malformed
    """
    ordered, issues = _read_documents(documents)
    dataset = ConsolidatedDataset(credit_id=credit_id, documents=[d.label for d in ordered])
    for issue in issues:
        log_with_context(logger, "warning", f"Skipping document: {issue.message}",
                         credit_id=credit_id, document=issue.document)
        dataset.structural_errors.append(issue)
    conflicts: Dict[str, Conflict] = {}
    first_order: Dict[str, int] = {}

    for order, document in enumerate(ordered):
        entry, issue = _parse_entry(document, credit_id)
        if issue is not None:
            log_with_context(logger, "warning", f"Skipping credit entry: {issue.message}",
                             credit_id=credit_id, document=document.label)
            dataset.structural_errors.append(issue)
            continue
        if entry is None:
            continue

        # declaredParameters is a set; repeats within one document are ignored
        for parameter in dict.fromkeys(entry.declared_parameters):
            value = entry.values.get(parameter)
            if is_empty(value):
                continue

            if parameter not in dataset.values:
                dataset.values[parameter] = value
                dataset.sources[parameter] = document.label
                first_order[parameter] = order
                continue

            conflict = conflicts.get(parameter)
            if conflict is None:
                conflict = Conflict(
                    parameter=parameter,
                    candidates=[ConflictCandidate(
                        document=dataset.sources[parameter],
                        value=dataset.values[parameter],
                        order=first_order[parameter],
                    )],
                )
                conflicts[parameter] = conflict
                dataset.conflicts.append(conflict)
            conflict.candidates.append(ConflictCandidate(document=document.label, value=value, order=order))

    logger.info(
        f"Merged {len(ordered)} documents for {credit_id}: "
        f"{len(dataset.values)} parameters, {len(dataset.conflicts)} conflicts"
    )
    return dataset


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def coerce_policy(policy: PolicyInput) -> ConsolidationPolicy:
    """
    Build a ConsolidationPolicy from a model, a dict or a strategy name.

    Raises:
        InvalidInputError: If the policy is malformed
    """
    if isinstance(policy, ConsolidationPolicy):
        return policy
    if policy is None:
        policy = {}
    elif isinstance(policy, str):
        policy = {"strategy": policy}

    if not isinstance(policy, Mapping):
        raise InvalidInputError(f"Policy must be an object, got {type(policy).__name__}")

    data = dict(policy)
    data.setdefault("strategy", get_default_resolution_strategy())
    if isinstance(data["strategy"], str):
        data["strategy"] = data["strategy"].strip().lower()

    try:
        return ConsolidationPolicy.model_validate(data)
    except ValidationError as e:
        raise InvalidInputError(f"Invalid consolidation policy: {e}")


def document_priority(label: str, priorities: Mapping[str, float],
                      default: Optional[float]) -> Optional[float]:
    """
    Score a document label against a priority table.

    Keys and label are normalized; the longest key contained in the label
    wins, so "Equipment Schedule" matches "equipment schedule" before
    "schedule". Unmatched labels score ``default``.
    """
    normalized = normalize_label(label)
    best_key: Optional[str] = None
    for key in priorities:
        key_normalized = normalize_label(key)
        if not key_normalized or key_normalized not in normalized:
            continue
        if best_key is None or len(key_normalized) > len(normalize_label(best_key)):
            best_key = key
    if best_key is None:
        return default
    return float(priorities[best_key])


def priority_tables(policy: ConsolidationPolicy) -> List[Dict[str, float]]:
    """The policy's custom priorities, then the built-in ones."""
    custom = {normalize_label(k): float(v) for k, v in policy.priorities.items()}
    builtin = {normalize_label(k): float(v) for k, v in DEFAULT_DOCUMENT_PRIORITIES.items()}
    return [custom, builtin]


def score_document(label: str, policy: ConsolidationPolicy) -> float:
    """
    Priority score of a document under a policy.

    A custom key matching the label decides the score even when a longer
    built-in key also matches; built-ins only score labels no custom key
    matches.
    """
    for table in priority_tables(policy):
        score = document_priority(label, table, None)
        if score is not None:
            return score
    if policy.default_priority is not None:
        return policy.default_priority
    return get_default_document_priority()


def _pick_priority(conflict: Conflict, policy: ConsolidationPolicy) -> Tuple[Optional[ConflictCandidate], str]:
    best: Optional[ConflictCandidate] = None
    best_score = 0.0
    for candidate in sorted(conflict.candidates, key=lambda c: c.order):
        score = score_document(candidate.document, policy)
        if best is None or score > best_score:
            best, best_score = candidate, score
    return best, METHOD_PRIORITY


def _pick_latest(conflict: Conflict, policy: ConsolidationPolicy) -> Tuple[Optional[ConflictCandidate], str]:
    return max(conflict.candidates, key=lambda c: c.order), METHOD_LATEST


def _pick_manual(conflict: Conflict, policy: ConsolidationPolicy) -> Tuple[Optional[ConflictCandidate], str]:
    choice = policy.manual_choices.get(conflict.parameter)
    if choice is None:
        first = min(conflict.candidates, key=lambda c: c.order)
        return first, METHOD_FIRST_OCCURRENCE

    for candidate in conflict.candidates:
        if candidate.document == choice:
            return candidate, METHOD_MANUAL

    logger.warning(
        f"Manual choice '{choice}' for {conflict.parameter} is not among its candidates; leaving unresolved"
    )
    return None, METHOD_MANUAL


RESOLVERS = {
    ResolutionStrategy.PRIORITY: _pick_priority,
    ResolutionStrategy.LATEST: _pick_latest,
    ResolutionStrategy.MANUAL: _pick_manual,
}


def resolve_conflicts(dataset: ConsolidatedDataset, policy: PolicyInput = None) -> ConsolidatedDataset:
    """
    Apply a resolution policy to the dataset's conflicts.

    Returns a new dataset; the input is left untouched. Resolved parameters
    take the chosen candidate's value and source and get a resolution log
    entry. A manual choice naming a document that is not a candidate leaves
    the conflict unresolved with the first recorded value.

    Raises:
        InvalidInputError: If the policy is malformed
    """
    policy = coerce_policy(policy)
    resolved = dataset.model_copy(deep=True)
    resolver = RESOLVERS[policy.strategy]

    for conflict in resolved.conflicts:
        if conflict.resolved:
            continue

        chosen, method = resolver(conflict, policy)
        if chosen is None or is_empty(chosen.value):
            continue

        resolved.values[conflict.parameter] = chosen.value
        resolved.sources[conflict.parameter] = chosen.document
        conflict.resolved = True
        conflict.method = method
        resolved.resolution_log.append(ResolutionLogEntry(
            parameter=conflict.parameter,
            value=chosen.value,
            source=chosen.document,
            method=method,
            candidates=len(conflict.candidates),
        ))
        logger.debug(f"Resolved {conflict.parameter} from {chosen.document} ({method})")

    unresolved = len(resolved.unresolved_conflicts)
    logger.info(
        f"Resolved {len(resolved.resolution_log)} conflicts for {resolved.credit_id} "
        f"using {policy.strategy.value}" + (f"; {unresolved} left unresolved" if unresolved else "")
    )
    return resolved


def consolidate(documents: DocumentsInput, credit_id: str, policy: PolicyInput = None,
                catalog=None) -> ConsolidatedDataset:
    """
    Merge documents for a credit and resolve the conflicts.

    Args:
        documents: Mapping of label to credits, or a list of SourceDocument
        credit_id: Target credit
        policy: Resolution policy; strategy defaults to CREDITKIT_RESOLUTION_STRATEGY
        catalog: Optional catalog used to reject unknown credits

    Raises:
        CreditNotFoundError: If a catalog is given and does not know the credit
        StructuralError: If the document collection itself is malformed
        InvalidInputError: If the policy is malformed
    """
    if catalog is not None:
        catalog.get(credit_id)
    policy = coerce_policy(policy)
    return resolve_conflicts(merge_documents(documents, credit_id), policy)


class Consolidator:
    """
    Consolidation bound to an optional catalog and a default policy.

    Holds no per-call state; one instance may serve concurrent calls.
    """

    def __init__(self, catalog=None, policy: PolicyInput = None):
        self.catalog = catalog
        self.policy = coerce_policy(policy) if policy is not None else None

    def validate(self, documents: DocumentsInput, credit_id: Optional[str] = None) -> List[StructuralIssue]:
        return validate_documents(documents, credit_id)

    def consolidate(self, documents: DocumentsInput, credit_id: str,
                    policy: PolicyInput = None) -> ConsolidatedDataset:
        return consolidate(documents, credit_id, policy if policy is not None else self.policy, self.catalog)


def document_values(documents: DocumentsInput, label: str, credit_id: str) -> Dict[str, Any]:
    """
    Declared, non-empty values one document supplies for a credit.

    Raises:
        DocumentNotFoundError: If no document carries the label
        StructuralError: If that document's credit entry is malformed
    """
    ordered, _ = _read_documents(documents)
    for document in ordered:
        if document.label != label:
            continue
        entry, issue = _parse_entry(document, credit_id)
        if issue is not None:
            raise StructuralError(issue.message, issues=[issue.model_dump()])
        if entry is None:
            return {}
        return {
            parameter: entry.values[parameter]
            for parameter in entry.declared_parameters
            if not is_empty(entry.values.get(parameter))
        }
    raise DocumentNotFoundError(label)
