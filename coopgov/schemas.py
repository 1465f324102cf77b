# coopgov/schemas.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
    model_serializer,
    model_validator,
)

from .settings import get_settings

_LIMITS = get_settings()


Unit = Annotated[float, Field(ge=0.0, le=1.0, allow_inf_nan=False)]
Percent = Annotated[float, Field(ge=0.0, le=100.0, allow_inf_nan=False)]


class ProposerRole(str, Enum):
    MEMBER = "member"
    MERCHANT = "merchant"
    ANCHOR = "anchor"
    BOT = "bot"


class ProposalCategory(str, Enum):
    BUSINESS_FUNDING = "business_funding"
    PROCUREMENT = "procurement"
    INFRASTRUCTURE = "infrastructure"
    TRANSPORT = "transport"
    WALLET_INCENTIVE = "wallet_incentive"
    GOVERNANCE = "governance"
    OTHER = "other"


class Currency(str, Enum):
    UC = "UC"
    USD = "USD"
    MIXED = "mixed"


class ProposalStatus(str, Enum):
    SUBMITTED = "submitted"
    DRAFT = "draft"
    VOTABLE = "votable"
    APPROVED = "approved"
    FUNDED = "funded"
    REJECTED = "rejected"
    FAILED = "failed"


class Decision(str, Enum):
    ADVANCE = "advance"
    REVISE = "revise"
    BLOCK = "block"


# -------------------------
# INPUT
# -------------------------
class Proposer(BaseModel):
    model_config = ConfigDict(frozen=True)

    wallet: str = Field(..., min_length=3, description="Opaque wallet identifier")
    role: ProposerRole = ProposerRole.MEMBER
    displayName: Optional[str] = None


class Region(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str = Field(..., min_length=2)
    name: str = Field(..., min_length=2)


class ProposalInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: Annotated[str, StringConstraints(strip_whitespace=True, min_length=_LIMITS.MIN_TEXT_LENGTH, max_length=_LIMITS.MAX_TEXT_LENGTH)]
    proposer: Optional[Proposer] = None
    region: Optional[Region] = None


# -------------------------
# STRUCTURED DRAFT
# -------------------------
class Budget(BaseModel):
    model_config = ConfigDict(frozen=True)

    currency: Currency = Currency.USD
    amountRequested: float = Field(..., ge=0, allow_inf_nan=False)


class TreasuryPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    localPercent: Percent
    nationalPercent: Percent
    acceptUC: bool = True

    @model_validator(mode="after")
    def _split_sums_to_100(self) -> "TreasuryPlan":
        # author-declared intent: compare in decimal, no tolerance
        total = Decimal(str(self.localPercent)) + Decimal(str(self.nationalPercent))
        if total != Decimal(100):
            raise ValueError("localPercent + nationalPercent must equal 100")
        return self


class Impact(BaseModel):
    model_config = ConfigDict(frozen=True)

    leakageReductionUSD: float = Field(0, ge=0, allow_inf_nan=False)
    jobsCreated: int = Field(0, ge=0)
    timeHorizonMonths: int = Field(12, gt=0)


class StructuredDraft(BaseModel):
    """
    Best-effort structured view of a proposal. Each field is either
    populated with a valid value or None.
    """

    model_config = ConfigDict(frozen=True)

    title: Optional[str] = None
    summary: Optional[str] = None
    category: Optional[ProposalCategory] = None
    budget: Optional[Budget] = None
    treasuryPlan: Optional[TreasuryPlan] = None
    impact: Optional[Impact] = None
    region: Optional[Region] = None


# -------------------------
# CHARTER
# -------------------------
class GoalDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1)
    weight: Unit
    description: Optional[str] = None


class CategoryConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: ProposalCategory
    label: str
    isActive: bool = True


class StructuralWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    feasibility: Unit = 0.40
    risk: Unit = 0.35
    accountability: Unit = 0.25


class ScoreMix(BaseModel):
    model_config = ConfigDict(frozen=True)

    missionWeight: Unit = 0.60
    structuralWeight: Unit = 0.40


def _all_categories() -> Tuple[CategoryConfig, ...]:
    return tuple(
        CategoryConfig(key=c, label=c.value.replace("_", " ").title())
        for c in ProposalCategory
    )


class CharterConfig(BaseModel):
    """Read-only charter snapshot for one cooperative at one version."""

    model_config = ConfigDict(frozen=True)

    coopId: str = Field("default", min_length=1)
    version: int = Field(1, ge=1)
    charterText: str = ""
    goalDefinitions: Tuple[GoalDefinition, ...] = Field(..., min_length=1)
    scoringWeights: Dict[str, Unit] = Field(default_factory=dict)
    structuralWeights: StructuralWeights = Field(default_factory=StructuralWeights)
    scoreMix: ScoreMix = Field(default_factory=ScoreMix)
    screeningPassThreshold: Unit = 0.6
    proposalCategories: Tuple[CategoryConfig, ...] = Field(default_factory=_all_categories)
    sectorExclusions: Tuple[str, ...] = ()
    quorumPercent: Percent = 20
    approvalThresholdPercent: Percent = 60
    votingWindowDays: int = Field(7, ge=1, le=30)
    minScBalanceToSubmit: float = Field(0, ge=0, allow_inf_nan=False)

    @field_validator("sectorExclusions", mode="before")
    @classmethod
    def _coerce_exclusions(cls, v: Any):
        if v is None:
            return ()
        out = []
        for item in v:
            if isinstance(item, dict):
                item = item.get("value", "")
            item = str(item).strip().lower()
            if item:
                out.append(item)
        return tuple(out)

    @field_validator("goalDefinitions")
    @classmethod
    def _unique_goal_keys(cls, v: Tuple[GoalDefinition, ...]):
        keys = [g.key for g in v]
        if len(set(keys)) != len(keys):
            raise ValueError("goal keys must be unique")
        if "composite" in keys:
            raise ValueError("'composite' is reserved and cannot be a goal key")
        return v

    def goal_keys(self) -> List[str]:
        return [g.key for g in self.goalDefinitions]

    def goal_weights(self) -> Dict[str, float]:
        return {g.key: g.weight for g in self.goalDefinitions}

    def goal_labels(self) -> Dict[str, str]:
        return {g.key: g.label for g in self.goalDefinitions}

    def active_category_keys(self) -> List[str]:
        return [c.key.value for c in self.proposalCategories if c.isActive]


# -------------------------
# SCORES / ALTERNATIVES
# -------------------------
class GoalScores(BaseModel):
    """
    Per-goal alignment plus the weighted composite.

    Serialised flat, e.g. {"LocalJobs": 0.6, ..., "composite": 0.55}.
    """

    model_config = ConfigDict(frozen=True)

    scores: Dict[str, Unit] = Field(default_factory=dict)
    composite: Unit = 0.0

    @model_validator(mode="before")
    @classmethod
    def _accept_flat(cls, data: Any):
        if isinstance(data, dict) and "scores" not in data:
            data = dict(data)
            composite = data.pop("composite", 0.0)
            return {"scores": data, "composite": composite}
        return data

    @model_serializer
    def _flatten(self) -> Dict[str, float]:
        return {**self.scores, "composite": self.composite}


ChangeValue = Union[bool, int, float, str]


class FieldChange(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    field: str = Field(..., min_length=1, description="Dot path, e.g. budget.amountRequested")
    from_: Optional[ChangeValue] = Field(None, alias="from")
    to: ChangeValue


class Alternative(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str = Field(..., min_length=3)
    changes: List[FieldChange] = Field(default_factory=list, max_length=10)
    scores: GoalScores
    rationale: str = Field(..., min_length=10)
    dataNeeds: Optional[List[str]] = None


class MissingDataItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    question: str
    why_needed: str
    blocking: bool = False


# -------------------------
# EVALUATION / AUDIT
# -------------------------
class StructuralScores(BaseModel):
    goal_mapping_valid: bool
    feasibility_score: Unit
    risk_score: Unit
    accountability_score: Unit


class MissionImpactScore(BaseModel):
    goal_id: str
    impact_score: Unit
    goal_priority_weight: Unit


class ComputedScores(BaseModel):
    mission_weighted_score: Unit
    structural_weighted_score: Unit
    overall_score: Unit
    passes_threshold: bool


class Evaluation(BaseModel):
    structural_scores: StructuralScores
    mission_impact_scores: List[MissionImpactScore] = Field(default_factory=list)
    computed_scores: ComputedScores


class Governance(BaseModel):
    quorumPercent: Percent = 20
    approvalThresholdPercent: Percent = 60
    votingWindowDays: int = Field(7, ge=1, le=30)


class AuditCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    passed: bool
    note: Optional[str] = None


class Audit(BaseModel):
    engineVersion: str = Field(..., min_length=1)
    charterVersion: Optional[int] = None
    checks: List[AuditCheck] = Field(default_factory=list)


# -------------------------
# OUTPUT
# -------------------------
class ProposalOutput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., pattern=r"^prop_[A-Za-z0-9]{6}$")
    createdAt: datetime
    status: ProposalStatus

    title: str
    summary: str
    proposer: Proposer
    region: Optional[Region] = None
    category: ProposalCategory = ProposalCategory.OTHER
    budget: Optional[Budget] = None
    treasuryPlan: Optional[TreasuryPlan] = None
    impact: Optional[Impact] = None

    evaluation: Evaluation
    governance: Governance
    audit: Audit

    goalScores: GoalScores
    alternatives: List[Alternative] = Field(default_factory=list, max_length=3)
    bestAlternative: Optional[Alternative] = None
    decision: Decision
    decisionReasons: List[str] = Field(..., min_length=1)
    missing_data: List[MissingDataItem] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_invariants(self) -> "ProposalOutput":
        composites = [a.scores.composite for a in self.alternatives]
        if composites != sorted(composites, reverse=True):
            raise ValueError("alternatives must be sorted by composite descending")
        if (
            self.decision == Decision.BLOCK
            and self.bestAlternative is not None
            and not self.bestAlternative.scores.composite > self.goalScores.composite
        ):
            raise ValueError("a blocking bestAlternative must outscore the original")
        return self


class ProposalSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    coop_id: str
    title: str
    decision: Decision
    status: ProposalStatus
    composite: float
    charter_version: Optional[int] = None
    created_at: Optional[datetime] = None


# -------------------------
# COMMENTS
# -------------------------
class CommentContext(BaseModel):
    title: str
    summary: str
    category: str = ProposalCategory.OTHER.value


class CommentIn(BaseModel):
    text: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=5_000)]


class CommentEvaluation(BaseModel):
    alignment: Literal["ALIGNED", "NEUTRAL", "MISALIGNED"]
    score: Unit
    analysis: str = Field(..., min_length=1)
    goalsImpacted: List[str] = Field(default_factory=list)


# -------------------------
# HTTP BODIES
# -------------------------
class ProposalSubmission(BaseModel):
    """
    Loose request body; the engine's structural validator owns the rules
    so that HTTP and library callers see the same field-level errors.
    """

    text: Any = None
    proposer: Optional[Dict[str, Any]] = None
    region: Optional[Dict[str, Any]] = None
    coopId: Optional[str] = None


class CharterUpdate(BaseModel):
    reason: str = Field(..., min_length=3)
    changes: Dict[str, Any] = Field(..., min_length=1)
    actor: Optional[str] = None


class CharterVersionInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    coop_id: str
    version: int
    is_active: bool
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
