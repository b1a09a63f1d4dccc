"""
Tests for behavior-outcome correlation analysis.
"""

from datetime import date, datetime, timezone

import pytest

from behavior_crm.models import BehaviorScore, BehaviorType, Outcome, OutcomeType
from behavior_crm.services.correlation import (
    align_periods,
    analyze_behavior_outcome_correlation,
    correlate,
    pearson_weight,
)
from behavior_crm.tests.conftest import USER_ID, FakeRecordStore

PERIODS = [
    (date(2025, 3, 1), date(2025, 3, 7)),
    (date(2025, 3, 8), date(2025, 3, 14)),
    (date(2025, 3, 15), date(2025, 3, 21)),
]


def _fixture_rows(make_behavior_score, make_outcome):
    scores = []
    outcomes = []
    for (start, end), visit, question, conversion in zip(
        PERIODS, (20, 50, 80), (70, 60, 50), (10.0, 20.0, 30.0)
    ):
        scores.append(make_behavior_score(
            behavior='visit', quality_score=visit, period_start=start, period_end=end
        ))
        scores.append(make_behavior_score(
            behavior='question', quality_score=question, period_start=start, period_end=end
        ))
        outcomes.append(make_outcome(
            hir_score=50, conversion_rate=conversion, period_start=start, period_end=end
        ))
    return scores, outcomes


class TestPearsonWeight:

    def test_perfect_positive(self) -> None:
        assert pearson_weight([1, 2, 3], [2, 4, 6]) == (1.0, 1.0)

    def test_perfect_negative(self) -> None:
        assert pearson_weight([1, 2, 3], [6, 4, 2]) == (-1.0, 1.0)

    def test_degenerate_inputs(self) -> None:
        assert pearson_weight([1], [1]) == (0.0, 0.0)
        assert pearson_weight([1, 2], [1, 2, 3]) == (0.0, 0.0)
        assert pearson_weight([5, 5, 5], [1, 2, 3]) == (0.0, 0.0)


class TestCorrelate:

    def test_all_pairs_in_enum_order(self, make_behavior_score, make_outcome) -> None:
        score_rows, outcome_rows = _fixture_rows(make_behavior_score, make_outcome)
        analysis = correlate(
            [BehaviorScore.model_validate(r) for r in score_rows],
            [Outcome.model_validate(r) for r in outcome_rows],
        )

        assert len(analysis.correlations) == 32
        first = analysis.correlations[0]
        assert (first.behavior, first.outcome) == (BehaviorType.APPROACH, OutcomeType.HIR)
        assert first.sample_size == 0

    def test_summary_ranks_by_weight_then_enum_order(self, make_behavior_score, make_outcome) -> None:
        score_rows, outcome_rows = _fixture_rows(make_behavior_score, make_outcome)
        analysis = correlate(
            [BehaviorScore.model_validate(r) for r in score_rows],
            [Outcome.model_validate(r) for r in outcome_rows],
        )

        pairs = {(c.behavior, c.outcome): c for c in analysis.correlations}
        visit = pairs[(BehaviorType.VISIT, OutcomeType.CONVERSION_RATE)]
        question = pairs[(BehaviorType.QUESTION, OutcomeType.CONVERSION_RATE)]
        assert (visit.correlation, visit.weight, visit.sample_size) == (1.0, 1.0, 3)
        assert (question.correlation, question.weight) == (-1.0, 1.0)

        summary = analysis.summary
        assert summary.top_behaviors_for_conversion == [BehaviorType.VISIT, BehaviorType.QUESTION]
        # constant HIR has no variance
        assert summary.top_behaviors_for_hir == []

    def test_top_n(self, make_behavior_score, make_outcome) -> None:
        score_rows, outcome_rows = _fixture_rows(make_behavior_score, make_outcome)
        analysis = correlate(
            [BehaviorScore.model_validate(r) for r in score_rows],
            [Outcome.model_validate(r) for r in outcome_rows],
            top_n=1,
        )
        assert analysis.summary.top_behaviors_for_conversion == [BehaviorType.VISIT]

    def test_no_overlapping_periods(self, make_behavior_score, make_outcome) -> None:
        scores = [BehaviorScore.model_validate(make_behavior_score(period_start=date(2025, 1, 1)))]
        outcomes = [Outcome.model_validate(make_outcome(period_start=date(2025, 2, 1)))]

        assert align_periods(scores, outcomes).empty
        analysis = correlate(scores, outcomes)
        assert all(c.weight == 0 for c in analysis.correlations)
        assert analysis.summary.top_behaviors_for_conversion == []

    def test_empty_input(self) -> None:
        analysis = correlate([], [])
        assert len(analysis.correlations) == 32
        assert analysis.summary.model_dump() == {
            'top_behaviors_for_hir': [],
            'top_behaviors_for_conversion': [],
            'top_behaviors_for_growth': [],
            'top_behaviors_for_prescription': [],
        }

    def test_custom_method(self, make_behavior_score, make_outcome) -> None:
        score_rows, outcome_rows = _fixture_rows(make_behavior_score, make_outcome)
        analysis = correlate(
            [BehaviorScore.model_validate(r) for r in score_rows],
            [Outcome.model_validate(r) for r in outcome_rows],
            method=lambda x, y: (0.5, 0.5) if len(x) >= 2 else (0.0, 0.0),
        )
        # equal weights fall back to enum order
        assert analysis.summary.top_behaviors_for_hir == [BehaviorType.VISIT, BehaviorType.QUESTION]


@pytest.mark.asyncio
class TestAnalyze:

    async def test_reads_account_wide_outcomes_only(
        self, store: FakeRecordStore, make_behavior_score, make_outcome
    ) -> None:
        score_rows, outcome_rows = _fixture_rows(make_behavior_score, make_outcome)
        store.seed('behavior_scores', score_rows)
        store.seed('outcomes', outcome_rows)
        # an account-scoped outcome that would break the perfect correlation
        store.seed('outcomes', [make_outcome(
            account_id='account-1', conversion_rate=-90.0,
            period_start=PERIODS[2][0], period_end=PERIODS[2][1],
        )])

        analysis = await analyze_behavior_outcome_correlation(
            store, USER_ID,
            datetime(2025, 3, 1, tzinfo=timezone.utc),
            datetime(2025, 3, 31, tzinfo=timezone.utc),
        )

        assert analysis.summary.top_behaviors_for_conversion == [BehaviorType.VISIT, BehaviorType.QUESTION]

    async def test_no_data(self, store: FakeRecordStore) -> None:
        analysis = await analyze_behavior_outcome_correlation(
            store, USER_ID,
            datetime(2025, 3, 1, tzinfo=timezone.utc),
            datetime(2025, 3, 31, tzinfo=timezone.utc),
        )
        assert all(c.weight == 0 and c.sample_size == 0 for c in analysis.correlations)
