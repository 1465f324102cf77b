# coopgov/engine/__init__.py
from .errors import (
    ProposalValidationError,
    ExtractionUnavailable,
    ConfigurationAnomaly,
    InternalScoringError,
    CharterNotFound,
)
from .validation import validate_input, check_draft
from .extraction import FieldExtractor, RuleBasedExtractor, sanitize_extraction, extract_with_timeout
from .scoring import GoalScorer, HeuristicGoalScorer, compose, compute_evaluation
from .decision import DecisionPolicyConfig, decide, status_from_decision
from .audit import AuditRecorder, REQUIRED_CHECKS
from .charter_config import CharterRegistry, default_charter
from .pipeline import ProposalEngine
