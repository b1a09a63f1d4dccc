"""
Tests for per-behavior scoring, the behavior-score refresh and the trend series.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from behavior_crm.models import Activity, BehaviorScore, BehaviorType, TrendGranularity
from behavior_crm.services.behavior_scores import (
    behavior_score_trend,
    bucket_start,
    calculate_behavior_scores,
    diversity_score,
    get_behavior_score_trend,
    get_behavior_scores,
    intensity_score,
    quality_score,
    refresh_behavior_scores,
)
from behavior_crm.tests.conftest import USER_ID, FakeRecordStore

PERIOD_START = datetime(2025, 3, 1, tzinfo=timezone.utc)
PERIOD_END = datetime(2025, 3, 7, 23, 59, 59, tzinfo=timezone.utc)


class TestSubScores:

    def test_intensity_weights_by_activity_type(self, make_activity) -> None:
        activities = [
            Activity.model_validate(make_activity(type=t)) for t in ('visit', 'call', 'message')
        ]
        assert intensity_score(activities) == 6

    def test_intensity_is_capped(self, make_activity) -> None:
        activities = [Activity.model_validate(make_activity(type='visit')) for _ in range(40)]
        assert intensity_score(activities) == 100

    def test_diversity_of_single_behavior(self, make_activity) -> None:
        activities = [Activity.model_validate(make_activity(behavior='visit'))]
        assert diversity_score(activities) == 13
        assert diversity_score([]) == 0

    def test_quality_with_follow_up(self, make_activity) -> None:
        activities = [Activity.model_validate(make_activity(
            behavior='follow_up', quality_score=80, quantity_score=60
        ))]
        # 0.4 * 80 + 0.3 * 60 + 0.3 * 100
        assert quality_score(activities) == 80

    def test_quality_without_follow_up(self, make_activity) -> None:
        activities = [Activity.model_validate(make_activity(quality_score=80, quantity_score=60))]
        assert quality_score(activities) == 50

    def test_quality_empty(self) -> None:
        assert quality_score([]) == 0


class TestCalculateBehaviorScores:

    def test_one_result_per_behavior_in_canonical_order(self, make_activity) -> None:
        activities = [
            Activity.model_validate(make_activity(behavior='visit', type='visit')),
            Activity.model_validate(make_activity(behavior='question', type='call')),
        ]

        results = calculate_behavior_scores(activities)

        assert [r.behavior for r in results] == list(BehaviorType)
        by_behavior = {r.behavior: r for r in results}
        assert by_behavior[BehaviorType.VISIT].intensity_score == 3
        assert by_behavior[BehaviorType.QUESTION].intensity_score == 2
        assert by_behavior[BehaviorType.APPROACH].intensity_score == 0
        assert by_behavior[BehaviorType.APPROACH].quality_score == 0


@pytest.mark.asyncio
class TestRefreshBehaviorScores:

    async def test_refresh_is_idempotent(self, store: FakeRecordStore, make_activity) -> None:
        store.seed('activities', [
            make_activity(performed_at=PERIOD_START + timedelta(days=d)) for d in range(3)
        ])

        first = await refresh_behavior_scores(store, USER_ID, PERIOD_START, PERIOD_END)
        second = await refresh_behavior_scores(store, USER_ID, PERIOD_START, PERIOD_END)

        stored = store.rows('behavior_scores')
        assert len(stored) == 8
        assert [s.model_dump(exclude={'id', 'created_at'}) for s in first] == [
            s.model_dump(exclude={'id', 'created_at'}) for s in second
        ]
        assert {row['id'] for row in stored} == {s.id for s in second}

    async def test_scores_outside_period_survive(
        self, store: FakeRecordStore, make_behavior_score
    ) -> None:
        store.seed('behavior_scores', [
            make_behavior_score(period_start=date(2025, 2, 22), period_end=date(2025, 2, 28)),
            make_behavior_score(period_start=date(2025, 3, 1), period_end=date(2025, 3, 7)),
            make_behavior_score(
                user_id='user-2', period_start=date(2025, 3, 1), period_end=date(2025, 3, 7)
            ),
        ])

        await refresh_behavior_scores(store, USER_ID, PERIOD_START, PERIOD_END)

        rows = store.rows('behavior_scores')
        assert len(rows) == 10
        assert sum(1 for r in rows if r['period_start'] == date(2025, 2, 22)) == 1
        assert sum(1 for r in rows if r['user_id'] == 'user-2') == 1

    async def test_get_returns_latest_period_first(
        self, store: FakeRecordStore, make_behavior_score
    ) -> None:
        store.seed('behavior_scores', [
            make_behavior_score(period_start=date(2025, 3, 1), period_end=date(2025, 3, 7)),
            make_behavior_score(period_start=date(2025, 3, 8), period_end=date(2025, 3, 14)),
        ])

        scores = await get_behavior_scores(
            store, USER_ID, PERIOD_START, datetime(2025, 3, 31, tzinfo=timezone.utc)
        )

        assert [s.period_start for s in scores] == [date(2025, 3, 8), date(2025, 3, 1)]


class TestTrend:

    @staticmethod
    def _scores(make_behavior_score, *rows) -> list:
        return [BehaviorScore.model_validate(make_behavior_score(**row)) for row in rows]

    def test_monday_starts_a_week(self) -> None:
        # 2025-03-12 is a Wednesday
        assert bucket_start(date(2025, 3, 12), TrendGranularity.WEEK) == date(2025, 3, 10)
        assert bucket_start(date(2025, 3, 10), TrendGranularity.WEEK) == date(2025, 3, 10)
        assert bucket_start(date(2025, 3, 12)) == date(2025, 3, 12)

    def test_daily_buckets_average_quality(self, make_behavior_score) -> None:
        scores = self._scores(
            make_behavior_score,
            dict(behavior='visit', quality_score=60, period_start=date(2025, 3, 3)),
            dict(behavior='visit', quality_score=81, period_start=date(2025, 3, 3)),
            dict(behavior='question', quality_score=40, period_start=date(2025, 3, 4)),
        )

        points = behavior_score_trend(scores)

        assert [p.date for p in points] == [date(2025, 3, 3), date(2025, 3, 4)]
        assert points[0].visit == 71
        assert points[0].question == 0
        assert points[1].question == 40
        assert points[1].visit == 0

    def test_weekly_buckets_merge_days(self, make_behavior_score) -> None:
        scores = self._scores(
            make_behavior_score,
            dict(behavior='contact', quality_score=50, period_start=date(2025, 3, 12)),
            dict(behavior='contact', quality_score=70, period_start=date(2025, 3, 14)),
            dict(behavior='contact', quality_score=90, period_start=date(2025, 3, 3)),
        )

        points = behavior_score_trend(scores, TrendGranularity.WEEK)

        assert [(p.date, p.contact) for p in points] == [
            (date(2025, 3, 3), 90),
            (date(2025, 3, 10), 60),
        ]

    def test_empty(self) -> None:
        assert behavior_score_trend([]) == []

    async def test_reads_stored_scores_in_period(
        self, store: FakeRecordStore, make_behavior_score
    ) -> None:
        store.seed('behavior_scores', [
            make_behavior_score(period_start=date(2025, 3, 2), period_end=date(2025, 3, 2), quality_score=30),
            make_behavior_score(period_start=date(2025, 3, 9), period_end=date(2025, 3, 9), quality_score=90),
            make_behavior_score(
                user_id='user-2', period_start=date(2025, 3, 2), period_end=date(2025, 3, 2),
                quality_score=100,
            ),
        ])

        points = await get_behavior_score_trend(store, USER_ID, PERIOD_START, PERIOD_END)

        assert [(p.date, p.visit) for p in points] == [(date(2025, 3, 2), 30)]
