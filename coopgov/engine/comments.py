# coopgov/engine/comments.py
from __future__ import annotations

from typing import List

import numpy as np

from ..schemas import CharterConfig, CommentContext, CommentEvaluation
from .scoring import CONCEPTS, keyword_hits, tokenize, goal_concepts

ALIGNED_AT = 0.6
NEUTRAL_AT = 0.3

CONSTRUCTIVE = {"should", "could", "suggest", "instead", "consider", "propose", "recommend", "phase"}
HOSTILE = {"scam", "stupid", "idiot", "garbage", "lol", "whatever", "spam"}
STOPWORDS = {
    "the", "and", "for", "with", "this", "that", "from", "into", "will", "our",
    "are", "was", "have", "has", "but", "not", "you", "its", "they", "their",
}


def _alignment(score: float) -> str:
    if score >= ALIGNED_AT:
        return "ALIGNED"
    if score >= NEUTRAL_AT:
        return "NEUTRAL"
    return "MISALIGNED"


def evaluate_comment(text: str, context: CommentContext, charter: CharterConfig) -> CommentEvaluation:
    """
    Rate how well a member comment engages the charter goals.

    Touching goals and engaging the proposal's own subject raise the score;
    constructive suggestions add a little, hostile noise takes it away.
    """
    words = tokenize(text)
    subject = {w for w in tokenize(f"{context.title} {context.summary}") if w not in STOPWORDS}

    impacted: List[str] = []
    for goal in charter.goalDefinitions:
        concepts = goal_concepts(goal.key, goal.label, goal.description)
        touched = any(keyword_hits(CONCEPTS[c]["keywords"], words) for c in concepts)
        if not touched and not concepts:
            touched = keyword_hits(set(tokenize(goal.label)), words) > 0
        if touched:
            impacted.append(goal.key)

    overlap = len(subject & set(words))
    constructive = bool(CONSTRUCTIVE & set(words))
    hostile = keyword_hits(HOSTILE, words)

    score = (
        0.2
        + min(0.45, 0.15 * len(impacted))
        + min(0.2, 0.05 * overlap)
        + (0.1 if constructive else 0.0)
        - min(0.4, 0.2 * hostile)
    )
    score = round(float(np.clip(score, 0.0, 1.0)), 3)

    labels = charter.goal_labels()
    if impacted:
        analysis = "Touches " + ", ".join(labels[k] for k in impacted) + "."
    else:
        analysis = "Does not engage any charter goal."
    if overlap:
        analysis += f" Engages the proposal's subject ({overlap} shared terms)."
    if constructive:
        analysis += " Offers a constructive suggestion."
    if hostile:
        analysis += " Contains dismissive language."

    return CommentEvaluation(
        alignment=_alignment(score),
        score=score,
        analysis=analysis,
        goalsImpacted=impacted,
    )
