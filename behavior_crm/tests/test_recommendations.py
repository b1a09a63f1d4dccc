"""
Tests for Next Best Action recommendations.
"""

from datetime import timedelta

import pytest

from behavior_crm.models import BehaviorType, CorrelationAnalysis, CorrelationSummary
from behavior_crm.services.recommendations import (
    least_performed,
    recommend_next_actions,
    recommendation_priority,
)
from behavior_crm.tests.conftest import NOW, USER_ID, FakeRecordStore, days_ago

TOP = [BehaviorType.VISIT, BehaviorType.PRESENTATION, BehaviorType.QUESTION]


def _analyzer(top):
    async def analyzer(store, user_id, start, end, top_n) -> CorrelationAnalysis:
        analyzer.top_n = top_n
        return CorrelationAnalysis(summary=CorrelationSummary(top_behaviors_for_conversion=top[:top_n]))
    return analyzer


class TestPriority:

    @pytest.mark.parametrize('rank,top_count,performed,expected', [
        (0, 3, 2, 60),
        (1, 3, 0, 60),
        (2, 3, 1, 20),
        (0, 5, 0, 100),
    ])
    def test_priority(self, rank: int, top_count: int, performed: int, expected: int) -> None:
        assert recommendation_priority(rank, top_count, performed) == expected

    def test_tie_goes_to_higher_ranked_behavior(self) -> None:
        assert least_performed(TOP, []) == (0, BehaviorType.VISIT, 0)


@pytest.mark.asyncio
class TestRecommendNextActions:

    @pytest.fixture
    def seeded(self, store: FakeRecordStore, make_account, make_activity, make_contact) -> FakeRecordStore:
        store.seed('accounts', [
            make_account(id='a3', name='Gamma'),
            make_account(id='a1', name='Alpha'),
            make_account(id='a2', name='Beta'),
        ])
        performed = days_ago(2)
        store.seed('activities', [
            make_activity(account_id='a1', behavior=behavior, performed_at=performed)
            for behavior in ('visit', 'visit', 'presentation', 'question')
        ] + [
            make_activity(account_id='a3', behavior=behavior, performed_at=performed)
            for behavior in ('visit', 'presentation')
        ] + [
            # outside the 30-day window
            make_activity(account_id='a2', behavior='visit', performed_at=days_ago(45)),
        ])
        store.seed('contacts', [
            make_contact(account_id='a1', name='Dr. Later', created_at=NOW),
            make_contact(account_id='a1', name='Dr. First', created_at=NOW - timedelta(days=10)),
        ])
        return store

    async def test_ranked_recommendations(self, seeded: FakeRecordStore) -> None:
        actions = await recommend_next_actions(seeded, USER_ID, now=NOW, analyzer=_analyzer(TOP))

        assert [a.account_id for a in actions] == ['a2', 'a1', 'a3']
        assert [a.behavior for a in actions] == [
            BehaviorType.VISIT, BehaviorType.PRESENTATION, BehaviorType.QUESTION,
        ]
        assert [a.priority for a in actions] == [80, 40, 40]
        assert 'has not been performed at Beta' in actions[0].reason
        assert 'only 1 times at Alpha' in actions[1].reason

    async def test_first_contact_is_attached(self, seeded: FakeRecordStore) -> None:
        actions = await recommend_next_actions(seeded, USER_ID, now=NOW, analyzer=_analyzer(TOP))

        by_account = {a.account_id: a for a in actions}
        assert by_account['a1'].contact_name == 'Dr. First'
        assert by_account['a2'].contact_id is None

    async def test_limit(self, seeded: FakeRecordStore) -> None:
        actions = await recommend_next_actions(
            seeded, USER_ID, limit=1, now=NOW, analyzer=_analyzer(TOP)
        )
        assert [a.account_id for a in actions] == ['a2']

    async def test_no_conversion_drivers(self, seeded: FakeRecordStore) -> None:
        assert await recommend_next_actions(seeded, USER_ID, now=NOW, analyzer=_analyzer([])) == []
        assert ('select', 'accounts') not in seeded.calls

    async def test_configured_top_n_reaches_analyzer(self, seeded: FakeRecordStore) -> None:
        analyzer = _analyzer(TOP)

        actions = await recommend_next_actions(seeded, USER_ID, now=NOW, analyzer=analyzer, top_n=2)

        assert analyzer.top_n == 2
        assert {a.behavior for a in actions} <= {BehaviorType.VISIT, BehaviorType.PRESENTATION}

    async def test_unvisited_top_behavior_beats_performed_one(
        self, store: FakeRecordStore, make_account, make_activity
    ) -> None:
        store.seed('accounts', [make_account(id='a1', name='Alpha')])
        store.seed('activities', [make_activity(account_id='a1', behavior='contact', performed_at=days_ago(3))])

        [action] = await recommend_next_actions(
            store, USER_ID, now=NOW,
            analyzer=_analyzer([BehaviorType.VISIT, BehaviorType.CONTACT]),
        )

        assert action.behavior == BehaviorType.VISIT
        assert action.priority == 60
