"""Deterministic lead scoring.

A score is the rounded weighted sum of four sub-scores, each clamped to
0..100. Missing inputs contribute zero. Every sub-score is monotonic in its
ordered input, so improving one attribute never lowers the total.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from imobipro.models.contact import Activity, Contact
from imobipro.models.enums import ActivityType, LeadSource, LeadUrgency

logger = logging.getLogger(__name__)

SCORING_ATTRIBUTES = frozenset({"lead_source", "budget", "urgency", "interaction_count"})

WEIGHTS: dict[str, float] = {
    "source": 0.25,
    "budget": 0.30,
    "urgency": 0.25,
    "engagement": 0.20,
}

SOURCE_SCORES: dict[LeadSource, int] = {
    LeadSource.REFERRAL: 100,
    LeadSource.PARTNER: 90,
    LeadSource.EVENT: 85,
    LeadSource.WEBSITE: 80,
    LeadSource.GOOGLE_ADS: 75,
    LeadSource.WHATSAPP: 70,
    LeadSource.N8N_AUTOMATION: 65,
    LeadSource.FACEBOOK: 60,
    LeadSource.INSTAGRAM: 60,
    LeadSource.OTHER: 50,
    LeadSource.EMAIL_MARKETING: 45,
    LeadSource.COLD_CALL: 30,
}

# (minimum budget in BRL, sub-score), checked from the top band down.
BUDGET_BANDS: tuple[tuple[int, int], ...] = (
    (1_000_000, 100),
    (500_000, 85),
    (300_000, 70),
    (150_000, 55),
    (50_000, 40),
    (1, 20),
)

URGENCY_SCORES: dict[LeadUrgency, int] = {
    LeadUrgency.LOW: 25,
    LeadUrgency.MEDIUM: 50,
    LeadUrgency.HIGH: 75,
    LeadUrgency.URGENT: 100,
}

POINTS_PER_INTERACTION = 10


def _clamp(value: float, low: int = 0, high: int = 100) -> float:
    return max(low, min(high, value))


def source_score(source: LeadSource | None) -> int:
    if source is None:
        return 0
    return int(_clamp(SOURCE_SCORES.get(source, 0)))


def budget_score(budget: int | float | None) -> int:
    if budget is None or budget <= 0:
        return 0
    for minimum, points in BUDGET_BANDS:
        if budget >= minimum:
            return points
    # Fractional budgets below 1 BRL still count as declared.
    return BUDGET_BANDS[-1][1]


def urgency_score(urgency: LeadUrgency | None) -> int:
    if urgency is None:
        return 0
    return URGENCY_SCORES.get(urgency, 0)


def engagement_score(interaction_count: int | None) -> int:
    if not interaction_count or interaction_count < 0:
        return 0
    return int(_clamp(POINTS_PER_INTERACTION * interaction_count))


@dataclass(frozen=True)
class ScoreResult:
    total: int
    breakdown: dict[str, Any] = field(default_factory=dict)


def compute_score(
    lead_source: LeadSource | None = None,
    budget: int | float | None = None,
    urgency: LeadUrgency | None = None,
    interaction_count: int | None = None,
) -> ScoreResult:
    """Pure scoring function; same inputs always give the same result."""
    factors = {
        "source": source_score(lead_source),
        "budget": budget_score(budget),
        "urgency": urgency_score(urgency),
        "engagement": engagement_score(interaction_count),
    }
    weighted = sum(factors[name] * weight for name, weight in WEIGHTS.items())
    total = int(_clamp(round(weighted)))
    breakdown: dict[str, Any] = {name: {"score": value, "weight": WEIGHTS[name]} for name, value in factors.items()}
    breakdown["total"] = total
    return ScoreResult(total=total, breakdown=breakdown)


def score_contact(contact: Contact) -> ScoreResult:
    return compute_score(
        lead_source=contact.lead_source,
        budget=contact.budget,
        urgency=contact.urgency,
        interaction_count=contact.interaction_count,
    )


def rescore_contact(db: Session, contact: Contact, performed_by_id: int | None = None) -> bool:
    """Apply a fresh score to `contact` inside the current transaction.

    Logs a SCORE_CHANGE activity when the value moves. The caller commits;
    persistence errors propagate from that commit.
    """
    result = score_contact(contact)
    previous = contact.lead_score or 0
    contact.score_breakdown = result.breakdown
    if result.total == previous and contact.id is not None:
        return False

    contact.lead_score = result.total
    if contact.id is None:
        # Brand-new contacts get their initial score without an activity row.
        return True

    db.add(
        Activity(
            company_id=contact.company_id,
            contact_id=contact.id,
            type=ActivityType.SCORE_CHANGE,
            title=f"Score {previous} -> {result.total}",
            details={"previous": previous, "current": result.total, "breakdown": result.breakdown},
            performed_by_id=performed_by_id,
        )
    )
    logger.info(
        "lead.score.changed",
        extra={
            "event": "lead.score.changed",
            "contact_id": contact.id,
            "previous": previous,
            "current": result.total,
        },
    )
    return True
