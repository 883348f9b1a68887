"""
CreditKit Core Models

Pydantic v2 models for credit definitions, source documents, consolidation
output and assessment results. These models provide type validation,
serialization, and documentation for all CreditKit data contracts.

Example usage:
    from core.models import CreditDefinition, AssessmentResult

    definition = CreditDefinition(**{
        "credit_id": "SSCr1",
        "name": "Site Assessment",
        "max_points": 1,
        "strategy": "options",
        "parameters": ["Site Survey"],
        "groups": [
            {"label": "option1", "requirements": [
                {"kind": "presence", "parameter": "Site Survey"}
            ]}
        ]
    })
    print(f"{definition.credit_id} awards up to {definition.max_points} point(s)")
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing_extensions import Annotated


Scalar = Union[bool, str, int, float, None]


class UnitSystem(str, Enum):
    """Unit system of the submitted values."""
    IP = "IP"  # Imperial (inch-pound)
    SI = "SI"  # Metric


class AssessmentStatus(str, Enum):
    """Terminal states of a credit evaluation."""
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"
    GAPS = "gaps"
    ERROR = "error"


class EvaluationStrategy(str, Enum):
    """How the requirement groups of a credit combine."""
    OPTIONS = "options"  # first fully compliant group wins
    PARTS = "parts"      # every group must pass


class ResolutionStrategy(str, Enum):
    """Conflict resolution policies."""
    PRIORITY = "priority"
    LATEST = "latest"
    MANUAL = "manual"


class RecommendationType(str, Enum):
    """Advisory record categories."""
    MISSING_DATA = "missing_data"
    NON_COMPLIANCE = "non_compliance"
    DATA_CONFLICTS = "data_conflicts"
    SUCCESS = "success"


# ---------------------------------------------------------------------------
# Requirement nodes
# ---------------------------------------------------------------------------

class Guard(BaseModel):
    """Applies a node only when a parameter's text contains a fragment."""
    parameter: str = Field(..., min_length=1)
    contains: str = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True, extra="forbid")


class _Node(BaseModel):
    description: Optional[str] = Field(None, description="Human readable purpose of the node")
    when: Optional[Guard] = Field(None, description="Optional guard; node is skipped when unmet")

    model_config = ConfigDict(frozen=True, extra="forbid")


class PresenceNode(_Node):
    """Gap when the parameter is empty."""
    kind: Literal["presence"] = "presence"
    parameter: str = Field(..., min_length=1)


class EqualsNode(_Node):
    """Parameter must equal a value (numeric or case-insensitive text)."""
    kind: Literal["equals"] = "equals"
    parameter: str = Field(..., min_length=1)
    value: Union[float, str]
    load_bearing: bool = Field(False, description="Failure abandons the whole option")


class LessThanNode(_Node):
    """Parameter must be strictly below a value."""
    kind: Literal["less_than"] = "less_than"
    parameter: str = Field(..., min_length=1)
    value: float
    unit: str = ""
    load_bearing: bool = False


class RangeNode(_Node):
    """Parameter must lie within inclusive bounds; either bound may be open."""
    kind: Literal["range"] = "range"
    parameter: str = Field(..., min_length=1)
    min: Optional[float] = None
    max: Optional[float] = None
    unit: str = ""
    load_bearing: bool = False

    @model_validator(mode='after')
    def validate_bounds(self):
        """Ensure at least one bound is given and min <= max."""
        if self.min is None and self.max is None:
            raise ValueError(f"Range on '{self.parameter}' needs a min or a max")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"Range on '{self.parameter}' has min greater than max")
        return self


class AllPresentNode(_Node):
    """One gap per empty member of the parameter list."""
    kind: Literal["all_present"] = "all_present"
    parameters: List[str] = Field(..., min_length=1)


class Tier(BaseModel):
    """One row of a tiered point table."""
    threshold: float = Field(..., description="Minimum percentage for this tier")
    points: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True, extra="forbid")


class CalculateNode(_Node):
    """
    Runs a named calculation once all referenced parameters are present.

    ``tiers`` maps a table name to a point table; ``tier_parameter`` names the
    parameter that selects the table (``default_tier`` when it is empty).
    """
    kind: Literal["calculate"] = "calculate"
    calculation: str = Field(..., min_length=1)
    parameters: List[str] = Field(..., min_length=1)
    optional_parameters: List[str] = Field(default_factory=list)
    threshold: Optional[float] = None
    tiers: Dict[str, List[Tier]] = Field(default_factory=dict)
    tier_parameter: Optional[str] = None
    default_tier: str = "default"

    @model_validator(mode='after')
    def validate_tiers(self):
        """The default tier table must exist when any tier table is given."""
        if self.tiers and self.default_tier not in self.tiers:
            raise ValueError(
                f"Calculation '{self.calculation}' has no '{self.default_tier}' tier table"
            )
        return self


RequirementNode = Annotated[
    Union[PresenceNode, EqualsNode, LessThanNode, RangeNode, AllPresentNode, CalculateNode],
    Field(discriminator="kind"),
]


class RequirementGroup(BaseModel):
    """A named option or part: an ordered sequence of requirement nodes."""
    label: str = Field(..., min_length=1, description="e.g. option1, part2")
    description: str = ""
    points: Optional[int] = Field(None, ge=0, description="Points for this group; defaults to the credit maximum")
    requirements: List[RequirementNode] = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True, extra="forbid")


class CreditDefinition(BaseModel):
    """Immutable declarative description of one credit."""
    credit_id: str = Field(..., min_length=1, pattern=r"^[A-Za-z0-9_-]+$")
    name: str = Field(..., min_length=1)
    max_points: int = Field(..., ge=0)
    strategy: EvaluationStrategy
    parameters: List[str] = Field(default_factory=list)
    groups: List[RequirementGroup] = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator('parameters')
    @classmethod
    def validate_parameters(cls, v):
        """Ensure recognized parameter names are unique and non-empty."""
        if len(set(v)) != len(v):
            raise ValueError("Parameter names must be unique")
        if any(not name.strip() for name in v):
            raise ValueError("Parameter names cannot be empty")
        return v

    @model_validator(mode='after')
    def validate_group_points(self):
        """Group points can never exceed the credit maximum."""
        for group in self.groups:
            if group.points is not None and group.points > self.max_points:
                raise ValueError(
                    f"{self.credit_id}/{group.label} awards {group.points} points, "
                    f"above the credit maximum of {self.max_points}"
                )
        return self


# ---------------------------------------------------------------------------
# Source documents and consolidation
# ---------------------------------------------------------------------------

class CreditEntry(BaseModel):
    """Per-credit payload of one source document."""
    declared_parameters: List[str] = Field(..., alias="declaredParameters")
    values: Dict[str, Scalar]

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SourceDocument(BaseModel):
    """An extracted document: a label plus credit entries, in processing order."""
    label: str = Field(..., min_length=1)
    credits: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


class ConflictCandidate(BaseModel):
    """One competing value for a parameter."""
    document: str
    value: Scalar
    order: int = Field(..., ge=0, description="Position of the document in processing order")


class Conflict(BaseModel):
    """Two or more documents supplying the same parameter."""
    parameter: str
    candidates: List[ConflictCandidate] = Field(default_factory=list)
    resolved: bool = False
    method: Optional[str] = None

    @property
    def values_differ(self) -> bool:
        return len({str(c.value).strip() for c in self.candidates}) > 1


class ResolutionLogEntry(BaseModel):
    """Audit record of a resolved parameter."""
    parameter: str
    value: Scalar
    source: str
    method: str
    candidates: int = Field(..., ge=1)


class StructuralIssue(BaseModel):
    """A malformed document or credit entry."""
    document: str
    credit_id: Optional[str] = None
    message: str


class ConsolidationPolicy(BaseModel):
    """How conflicts are resolved."""
    strategy: ResolutionStrategy = ResolutionStrategy.PRIORITY
    priorities: Dict[str, float] = Field(default_factory=dict)
    manual_choices: Dict[str, str] = Field(default_factory=dict, alias="manualChoices")
    default_priority: Optional[float] = Field(None, alias="defaultPriority")

    model_config = ConfigDict(populate_by_name=True, extra="forbid", use_enum_values=False)


class ConsolidatedDataset(BaseModel):
    """Flat parameter map for one credit with provenance and conflicts."""
    credit_id: str
    values: Dict[str, Scalar] = Field(default_factory=dict)
    sources: Dict[str, str] = Field(default_factory=dict)
    conflicts: List[Conflict] = Field(default_factory=list)
    resolution_log: List[ResolutionLogEntry] = Field(default_factory=list)
    structural_errors: List[StructuralIssue] = Field(default_factory=list)
    documents: List[str] = Field(default_factory=list, description="Labels in processing order")

    @property
    def unresolved_conflicts(self) -> List[Conflict]:
        return [c for c in self.conflicts if not c.resolved]

    def conflict_for(self, parameter: str) -> Optional[Conflict]:
        for conflict in self.conflicts:
            if conflict.parameter == parameter:
                return conflict
        return None


# ---------------------------------------------------------------------------
# Assessment
# ---------------------------------------------------------------------------

class GroupOutcome(BaseModel):
    """Evaluation trace of one option or part."""
    label: str
    index: int = Field(..., ge=1)
    compliant: bool = False
    abandoned: bool = False
    points: int = 0
    gaps: List[str] = Field(default_factory=list)
    non_compliant: List[str] = Field(default_factory=list)
    calculations: Dict[str, Any] = Field(default_factory=dict)


class AssessmentResult(BaseModel):
    """
    Verdict for one credit evaluation.

    Immutable once returned; ``awarded`` implies no gaps and no
    non-compliance.
    """
    credit_id: str
    credit_name: str
    max_points: int = Field(..., ge=0)
    points: int = Field(0, ge=0)
    awarded: bool = False
    status: AssessmentStatus
    unit_system: UnitSystem = UnitSystem.IP
    option: Optional[int] = Field(None, description="Option number used (options strategy)")
    gaps: List[str] = Field(default_factory=list)
    non_compliant: List[str] = Field(default_factory=list)
    calculations: Dict[str, Any] = Field(default_factory=dict)
    groups: List[GroupOutcome] = Field(default_factory=list)
    error: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode='after')
    def validate_verdict(self):
        """Enforce the award invariants."""
        if self.points > self.max_points:
            raise ValueError(f"Awarded {self.points} points above maximum {self.max_points}")
        if self.awarded and (self.gaps or self.non_compliant):
            raise ValueError("An awarded credit cannot carry gaps or non-compliance")
        if self.awarded != (self.status == AssessmentStatus.COMPLIANT):
            raise ValueError(f"Status '{self.status.value}' does not match awarded={self.awarded}")
        if not self.awarded and self.points:
            raise ValueError("Points can only be awarded to a compliant credit")
        return self


class Recommendation(BaseModel):
    """Advisory record produced from an assessment."""
    type: RecommendationType
    priority: Literal["high", "medium", "low"]
    message: str
    action: str
    parameters: List[str] = Field(default_factory=list)

    model_config = ConfigDict(use_enum_values=True)
