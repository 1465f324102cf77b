# coopgov/engine/extraction.py
from __future__ import annotations

import asyncio
import inspect
import math
import re
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel

from ..logging_config import log_failure
from ..schemas import Currency, StructuredDraft
from .errors import ExtractionUnavailable
from .validation import DraftIssue, validate_draft_fields


# Sync extractor calls run outside the loop's default executor so a hung
# worker is simply abandoned on timeout; asyncio.run() only joins the default
# one. Each ProposalEngine owns a pool; this one serves direct callers.
_EXTRACTOR_POOL = ThreadPoolExecutor(max_workers=4, thread_name_prefix="coopgov-extract")

CATEGORY_CONFIDENCE_FLOOR = 0.30


class FieldExtractor(ABC):
    """Turns raw proposal text into a best-effort draft (untrusted)."""

    name: str = "extractor"

    @abstractmethod
    def extract(self, text: str) -> StructuredDraft | Mapping[str, Any]:
        """Return whatever could be read; raise ExtractionUnavailable if nothing can."""


@dataclass
class SanitizedDraft:
    draft: StructuredDraft
    issues: List[DraftIssue] = field(default_factory=list)
    trusted: bool = True
    discarded: List[str] = field(default_factory=list)


@dataclass
class ExtractionOutcome:
    raw: Any = None
    available: bool = True
    reason: Optional[str] = None


def normalize_currency(value: Any) -> str:
    v = str(value or "").strip().lower()
    if v == "uc":
        return Currency.UC.value
    if v == "mixed":
        return Currency.MIXED.value
    return Currency.USD.value


def sanitize_extraction(raw: Any) -> SanitizedDraft:
    """
    Re-validate extractor output with the same constraints as user input.

    Corrupt fields are dropped. A broken invariant (split not summing to
    100, negative or non-finite amounts) distrusts the whole draft: only title and
    summary survive, the rest must come from the author.
    """
    if raw is None:
        return SanitizedDraft(StructuredDraft())
    if isinstance(raw, BaseModel):
        raw = raw.model_dump(mode="json")
    if not isinstance(raw, Mapping):
        return SanitizedDraft(
            StructuredDraft(),
            [DraftIssue("draft", f"extractor returned {type(raw).__name__}, expected a mapping")],
        )

    data: Dict[str, Any] = dict(raw)
    budget = data.get("budget")
    if isinstance(budget, Mapping):
        budget = dict(budget)
        budget["currency"] = normalize_currency(budget.get("currency"))
        data["budget"] = budget

    clean, issues = validate_draft_fields(data)
    trusted = not any(i.invariant for i in issues)
    discarded: List[str] = []
    if not trusted:
        discarded = [k for k in clean if k not in ("title", "summary")]
        clean = {k: v for k, v in clean.items() if k in ("title", "summary")}
    return SanitizedDraft(StructuredDraft(**clean), issues, trusted, discarded)


async def extract_with_timeout(
    extractor: FieldExtractor,
    text: str,
    timeout_s: float,
    executor: Optional[ThreadPoolExecutor] = None,
) -> ExtractionOutcome:
    """
    Call the extractor with a bounded wait.

    Timeout, explicit unavailability and extractor crashes all come back
    as an unavailable outcome. Cancellation of the awaiting run propagates;
    a sync worker still running is left to finish on its own and keeps its
    executor slot until it does, so a pool of N workers stops serving new
    calls once N extractors hang.
    """
    name = getattr(extractor, "name", type(extractor).__name__)
    try:
        if inspect.iscoroutinefunction(extractor.extract):
            raw = await asyncio.wait_for(extractor.extract(text), timeout_s)
        else:
            loop = asyncio.get_running_loop()
            fut = loop.run_in_executor(executor or _EXTRACTOR_POOL, extractor.extract, text)
            raw = await asyncio.wait_for(fut, timeout_s)
    except asyncio.TimeoutError:
        log_failure("EXTRACTOR_TIMEOUT", {"extractor": name, "timeout_s": timeout_s})
        return ExtractionOutcome(available=False, reason=f"timed out after {timeout_s}s")
    except ExtractionUnavailable as e:
        log_failure("EXTRACTOR_UNAVAILABLE", {"extractor": name, "detail": str(e)})
        return ExtractionOutcome(available=False, reason=str(e) or "unavailable")
    except Exception as e:
        # Third-party backend; any crash counts as unavailable.
        log_failure("EXTRACTOR_ERROR", {"extractor": name, "error": repr(e)})
        return ExtractionOutcome(available=False, reason=f"extractor error: {type(e).__name__}")
    return ExtractionOutcome(raw=raw)


# -------------------------
# RULE-BASED EXTRACTOR
# -------------------------
_SCALES = {"k": 1_000, "thousand": 1_000, "m": 1_000_000, "million": 1_000_000}

MONEY_PATTERN = re.compile(
    r"(?P<dollar>\$)\s?(?P<num>\d[\d,]*(?:\.\d+)?)\s*(?P<scale>k|m|thousand|million)?\b"
    r"|(?P<num2>\d[\d,]*(?:\.\d+)?)\s*(?P<scale2>k|m|thousand|million)?\s*(?P<unit>uc|usd|dollars)\b",
    re.IGNORECASE,
)
SPLIT_PATTERN = re.compile(
    r"(?P<a>\d{1,3}(?:\.\d+)?)\s*%?\s*/\s*(?P<b>\d{1,3}(?:\.\d+)?)\s*%?"
    r"(?P<tail>[^.\n]{0,40})",
    re.IGNORECASE,
)
LOCAL_PCT_PATTERN = re.compile(r"(?P<p>\d{1,3}(?:\.\d+)?)\s*%\s*(?:to\s+|for\s+)?local", re.IGNORECASE)
NATIONAL_PCT_PATTERN = re.compile(r"(?P<p>\d{1,3}(?:\.\d+)?)\s*%\s*(?:to\s+|for\s+)?national", re.IGNORECASE)
JOBS_PATTERN = re.compile(
    r"(?P<n>\d+)\s+(?:new\s+|local\s+|full[- ]time\s+|part[- ]time\s+|permanent\s+)*(?:jobs?|positions|hires)\b",
    re.IGNORECASE,
)
HORIZON_PATTERN = re.compile(r"(?P<n>\d+)\s*(?P<unit>months?|years?)\b", re.IGNORECASE)
LEAKAGE_HINT = re.compile(r"leak|\bkeep\w*|recirculat|\bstay\w*\s+in|\bsav(?:e|es|ing)\b", re.IGNORECASE)
NO_UC_PATTERN = re.compile(r"\b(?:no|not|without|refuse\w*)\s+(?:accept\w*\s+)?(?:uc|unity coin)\b", re.IGNORECASE)
SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


def _to_amount(num: str, scale: Optional[str]) -> Optional[float]:
    value = float(num.replace(",", ""))
    if scale:
        value *= _SCALES[scale.lower()]
    # digit runs too long for a float come back as inf
    return value if math.isfinite(value) else None


class RuleBasedExtractor(FieldExtractor):
    """Deterministic regex extractor; category comes from the text classifier."""

    name = "rule-based"

    def __init__(self, classifier=None, confidence_floor: float = CATEGORY_CONFIDENCE_FLOOR):
        if classifier is None:
            from ..ai.predictors import classify_category
            classifier = classify_category
        self.classifier = classifier
        self.confidence_floor = confidence_floor

    def extract(self, text: str) -> Dict[str, Any]:
        content = text.strip()
        if not content:
            raise ExtractionUnavailable("empty text")

        out: Dict[str, Any] = {
            "title": self._title(content),
            "summary": content[:500],
            "category": self._category(content),
        }

        budget, leakage = self._money(content)
        if budget is not None:
            out["budget"] = budget

        plan = self._treasury(content)
        if plan is not None:
            out["treasuryPlan"] = plan

        impact = self._impact(content, leakage)
        if impact is not None:
            out["impact"] = impact
        return out

    def _title(self, content: str) -> Optional[str]:
        first = SENTENCE_END.split(content, maxsplit=1)[0].strip().rstrip(".!?")
        if len(first) > 140:
            first = first[:137].rsplit(" ", 1)[0] + "..."
        return first if len(first) >= 3 else None

    def _category(self, content: str) -> str:
        label, conf = self.classifier(content)
        return label if conf >= self.confidence_floor else "other"

    def _money(self, content: str):
        budget = None
        leakage = 0.0
        saw_uc = saw_usd = False
        for m in MONEY_PATTERN.finditer(content):
            if m.group("dollar"):
                amount = _to_amount(m.group("num"), m.group("scale"))
                is_uc = False
            else:
                amount = _to_amount(m.group("num2"), m.group("scale2"))
                is_uc = m.group("unit").lower() == "uc"
            if amount is None:
                continue
            before = content[max(0, m.start() - 40):m.start()]
            if LEAKAGE_HINT.search(before):
                leakage = max(leakage, amount)
                continue
            if budget is None:
                budget = amount
            saw_uc = saw_uc or is_uc
            saw_usd = saw_usd or not is_uc

        if budget is None:
            return None, leakage
        currency = "mixed" if (saw_uc and saw_usd) else ("uc" if saw_uc else "usd")
        return {"currency": currency, "amountRequested": budget}, leakage

    def _treasury(self, content: str) -> Optional[Dict[str, Any]]:
        accept_uc = NO_UC_PATTERN.search(content) is None
        for m in SPLIT_PATTERN.finditer(content):
            if "local" in m.group("tail").lower() or "local" in content[max(0, m.start() - 30):m.start()].lower():
                return {
                    "localPercent": float(m.group("a")),
                    "nationalPercent": float(m.group("b")),
                    "acceptUC": accept_uc,
                }
        local = LOCAL_PCT_PATTERN.search(content)
        national = NATIONAL_PCT_PATTERN.search(content)
        if local is None and national is None:
            return None
        if local is not None and national is not None:
            lp, np_ = float(local.group("p")), float(national.group("p"))
        elif local is not None:
            lp = float(local.group("p"))
            np_ = 100.0 - lp
        else:
            np_ = float(national.group("p"))
            lp = 100.0 - np_
        return {"localPercent": lp, "nationalPercent": np_, "acceptUC": accept_uc}

    def _impact(self, content: str, leakage: float) -> Optional[Dict[str, Any]]:
        jobs = JOBS_PATTERN.search(content)
        horizon = HORIZON_PATTERN.search(content)
        if not (jobs or horizon or leakage):
            return None
        months = 12
        if horizon:
            n = int(horizon.group("n"))
            months = n * 12 if horizon.group("unit").lower().startswith("year") else n
        return {
            "leakageReductionUSD": leakage,
            "jobsCreated": int(jobs.group("n")) if jobs else 0,
            "timeHorizonMonths": max(1, months),
        }
