# coopgov/engine/pipeline.py
from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

from ..logging_config import log_event, log_failure
from ..schemas import (
    CharterConfig,
    CommentContext,
    CommentEvaluation,
    Governance,
    ProposalCategory,
    ProposalInput,
    ProposalOutput,
    Proposer,
    StructuredDraft,
)
from ..settings import get_settings
from .alternatives import generate_candidates, select_alternatives
from .audit import AuditRecorder
from .charter_config import default_charter
from .comments import evaluate_comment
from .compliance import category_check, run_compliance_checks
from .decision import DecisionPolicyConfig, decide, status_from_decision
from .errors import ConfigurationAnomaly, InternalScoringError
from .extraction import (
    FieldExtractor,
    RuleBasedExtractor,
    SanitizedDraft,
    extract_with_timeout,
    sanitize_extraction,
)
from .ids import generate_proposal_id
from .missing_data import compliance_items, detect_missing_data
from .scoring import GoalScorer, HeuristicGoalScorer, check_goal_weights, compose, compute_evaluation, score_draft
from .validation import DraftIssue, validate_input

UNTITLED = "Untitled proposal"
ANONYMOUS = Proposer(wallet="anonymous")


def _issue_note(issues: List[DraftIssue]) -> Optional[str]:
    if not issues:
        return None
    return "; ".join(f"{i.field}: {i.message}" for i in issues)


class ProposalEngine:
    """
    Runs one proposal through validation, extraction, scoring, alternatives,
    missing-data detection and the decision policy.

    Only ProposalValidationError escapes; every other problem is folded
    into the returned ProposalOutput.
    """

    def __init__(
        self,
        extractor: FieldExtractor | None = None,
        scorer: GoalScorer | None = None,
        settings=None,
        policy: DecisionPolicyConfig | None = None,
    ):
        self.settings = settings or get_settings()
        self.extractor = extractor or RuleBasedExtractor()
        self.scorer = scorer or HeuristicGoalScorer()
        self.policy = policy or DecisionPolicyConfig.from_settings(self.settings)
        self.version = self.settings.ENGINE_VERSION
        self.timeout_s = float(self.settings.EXTRACTOR_TIMEOUT_SECONDS)
        # per-engine so hung extractors in one engine never starve another
        self.extractor_pool = ThreadPoolExecutor(
            max_workers=int(self.settings.EXTRACTOR_WORKERS),
            thread_name_prefix="coopgov-extract",
        )
        self.max_alternatives = int(self.settings.MAX_ALTERNATIVES)

    # -------------------------
    # PUBLIC
    # -------------------------
    def evaluate(
        self,
        payload: ProposalInput | Mapping[str, Any],
        charter: CharterConfig | None = None,
    ) -> ProposalOutput:
        return asyncio.run(self.evaluate_async(payload, charter))

    def evaluate_comment(
        self,
        text: str,
        context: CommentContext,
        charter: CharterConfig | None = None,
    ) -> CommentEvaluation:
        return evaluate_comment(text, context, charter or self._default_charter())

    async def evaluate_async(
        self,
        payload: ProposalInput | Mapping[str, Any],
        charter: CharterConfig | None = None,
    ) -> ProposalOutput:
        proposal = validate_input(payload)
        charter = charter or self._default_charter()

        audit = AuditRecorder(self.version)
        audit.record("basic_validation", True)

        # ---------- extraction (untrusted) ----------
        outcome = await extract_with_timeout(
            self.extractor, proposal.text, self.timeout_s, executor=self.extractor_pool,
        )
        audit.record("extraction_available", outcome.available, outcome.reason)
        sanitized = sanitize_extraction(outcome.raw) if outcome.available else SanitizedDraft(StructuredDraft())
        audit.record("extraction_schema", not sanitized.issues, _issue_note(sanitized.issues))

        draft = sanitized.draft
        if proposal.region is not None:
            # author-declared region wins over anything inferred
            draft = draft.model_copy(update={"region": proposal.region})

        self._record_draft_checks(audit, draft, sanitized)

        cat = category_check(draft, charter)
        audit.record(cat.name, cat.passed, cat.note)
        if not cat.passed:
            draft = draft.model_copy(update={"category": ProposalCategory.OTHER})

        compliance = run_compliance_checks(proposal.text, draft, charter)
        audit.extend(compliance)

        try:
            check_goal_weights(charter)
            audit.record("charter_weights_normalized", True)
        except ConfigurationAnomaly as e:
            log_failure("CHARTER_WEIGHTS_ANOMALY", {"coop_id": charter.coopId, "detail": str(e)})
            audit.record("charter_weights_normalized", False, str(e))

        # ---------- scoring + missing data (join point) ----------
        goal_scores, alternatives, missing = await self._score_and_detect(
            draft, charter, audit,
            extraction_available=outcome.available,
            trusted=sanitized.trusted,
        )
        missing = missing + compliance_items(compliance)

        # ---------- decision ----------
        decision = decide(goal_scores, alternatives, missing, compliance, charter, self.policy)
        status = status_from_decision(decision, self.policy)

        out = ProposalOutput(
            id=generate_proposal_id(),
            createdAt=datetime.now(timezone.utc),
            status=status,
            title=draft.title or UNTITLED,
            summary=draft.summary or proposal.text[:500],
            proposer=proposal.proposer or ANONYMOUS,
            region=draft.region,
            category=draft.category or ProposalCategory.OTHER,
            budget=draft.budget,
            treasuryPlan=draft.treasuryPlan,
            impact=draft.impact,
            evaluation=compute_evaluation(draft, charter, goal_scores),
            governance=Governance(
                quorumPercent=charter.quorumPercent,
                approvalThresholdPercent=charter.approvalThresholdPercent,
                votingWindowDays=charter.votingWindowDays,
            ),
            audit=audit.finalize(charter.version),
            goalScores=goal_scores,
            alternatives=alternatives,
            bestAlternative=decision.best_alternative,
            decision=decision.decision,
            decisionReasons=decision.reasons,
            missing_data=missing,
        )
        log_event(
            "PROPOSAL_EVALUATED",
            f"{out.id} -> {out.decision.value}",
            {
                "id": out.id,
                "coop_id": charter.coopId,
                "charter_version": charter.version,
                "composite": goal_scores.composite,
                "decision": out.decision.value,
                "status": out.status.value,
            },
        )
        return out

    # -------------------------
    # INTERNALS
    # -------------------------
    def _default_charter(self) -> CharterConfig:
        return default_charter(self.settings.DEFAULT_COOP_ID)

    def _record_draft_checks(self, audit: AuditRecorder, draft: StructuredDraft, sanitized: SanitizedDraft) -> None:
        by_field = {i.field: i for i in sanitized.issues}

        if draft.treasuryPlan is not None:
            plan = draft.treasuryPlan
            audit.record(
                "treasury_allocation_sum", True,
                f"local {plan.localPercent:g} + national {plan.nationalPercent:g} = 100",
            )
        elif "treasuryPlan" in by_field:
            audit.record("treasury_allocation_sum", False, by_field["treasuryPlan"].message)
        elif "treasuryPlan" in sanitized.discarded:
            audit.record(
                "treasury_allocation_sum", False,
                "treasury plan discarded, draft untrusted after a failed invariant",
            )
        else:
            audit.record("treasury_allocation_sum", False, "treasury plan missing, could not be extracted from text")

        budget_issue = by_field.get("budget")
        if budget_issue is not None and budget_issue.invariant:
            audit.record("budget_non_negative", False, budget_issue.message)
        else:
            audit.record(
                "budget_non_negative", True,
                None if draft.budget is not None else "no budget extracted",
            )

    async def _score_and_detect(
        self,
        draft: StructuredDraft,
        charter: CharterConfig,
        audit: AuditRecorder,
        *,
        extraction_available: bool,
        trusted: bool,
    ):
        failed_strategies: List[str] = []
        candidates = generate_candidates(draft, charter, failed=failed_strategies)
        scoring = [asyncio.to_thread(score_draft, self.scorer, draft, charter, "original")]
        scoring += [
            asyncio.to_thread(score_draft, self.scorer, c.draft, charter, c.label)
            for c in candidates
        ]
        detecting = asyncio.to_thread(
            detect_missing_data, draft,
            extraction_available=extraction_available, trusted=trusted,
        )
        *results, missing = await asyncio.gather(*scoring, detecting, return_exceptions=True)
        if isinstance(missing, BaseException):
            raise missing

        original, cand_results = results[0], results[1:]
        if isinstance(original, InternalScoringError):
            log_failure("GOAL_SCORING_FAILED", {"detail": str(original)})
            audit.record("goal_scoring", False, str(original))
            audit.record("alternative_scoring", False, "skipped, original could not be scored")
            return compose({}, charter), [], missing
        if isinstance(original, BaseException):
            raise original
        audit.record("goal_scoring", True)

        scored: List[tuple] = []
        dropped: List[str] = list(failed_strategies)
        for cand, res in zip(candidates, cand_results):
            if isinstance(res, InternalScoringError):
                log_failure("ALTERNATIVE_SCORING_FAILED", {"label": cand.label, "detail": str(res)})
                dropped.append(cand.label)
            elif isinstance(res, BaseException):
                raise res
            else:
                scored.append((cand, res))

        alternatives = select_alternatives(scored, original, self.max_alternatives)
        note = f"{len(candidates)} candidates, {len(alternatives)} kept"
        if dropped:
            note += f"; dropped: {', '.join(dropped)}"
        audit.record("alternative_scoring", not dropped, note)
        return original, alternatives, missing
