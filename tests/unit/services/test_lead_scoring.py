from __future__ import annotations

from imobipro.models.enums import LeadSource, LeadUrgency
from imobipro.services.lead_scoring import budget_score, compute_score, engagement_score, source_score, urgency_score


def test_score_is_zero_when_nothing_is_known():
    result = compute_score()
    assert result.total == 0
    assert result.breakdown["total"] == 0


def test_score_reaches_100_for_best_inputs():
    result = compute_score(
        lead_source=LeadSource.REFERRAL,
        budget=1_500_000,
        urgency=LeadUrgency.URGENT,
        interaction_count=12,
    )
    assert result.total == 100


def test_score_is_rounded_weighted_sum():
    # 80*0.25 + 70*0.30 + 75*0.25 + 30*0.20 = 65.75
    result = compute_score(
        lead_source=LeadSource.WEBSITE,
        budget=400_000,
        urgency=LeadUrgency.HIGH,
        interaction_count=3,
    )
    assert result.total == 66
    assert result.breakdown["budget"] == {"score": 70, "weight": 0.30}


def test_score_is_deterministic():
    first = compute_score(LeadSource.FACEBOOK, 200_000, LeadUrgency.MEDIUM, 2)
    second = compute_score(LeadSource.FACEBOOK, 200_000, LeadUrgency.MEDIUM, 2)
    assert first == second


def test_budget_and_engagement_never_lower_the_score():
    previous = -1
    for budget in (None, 10, 60_000, 200_000, 350_000, 700_000, 2_000_000):
        total = compute_score(LeadSource.OTHER, budget, LeadUrgency.LOW, 0).total
        assert total >= previous
        previous = total

    scores = [engagement_score(count) for count in range(0, 15)]
    assert scores == sorted(scores)
    assert scores[-1] == 100


def test_higher_urgency_always_scores_higher():
    ladder = (LeadUrgency.LOW, LeadUrgency.MEDIUM, LeadUrgency.HIGH, LeadUrgency.URGENT)
    sub_scores = [urgency_score(urgency) for urgency in ladder]
    assert sub_scores == sorted(set(sub_scores))
    assert urgency_score(None) < sub_scores[0]

    totals = [compute_score(LeadSource.WEBSITE, 200_000, urgency, 3).total for urgency in ladder]
    assert all(lower < higher for lower, higher in zip(totals, totals[1:]))


def test_sub_scores_handle_missing_and_invalid_inputs():
    assert source_score(None) == 0
    assert budget_score(0) == 0
    assert budget_score(-5) == 0
    assert budget_score(0.5) == 20
    assert engagement_score(None) == 0
    assert engagement_score(-3) == 0
