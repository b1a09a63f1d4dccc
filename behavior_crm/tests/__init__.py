'''
Behavior CRM Backend Test Suite

Test Modules:
-------------
- test_store.py: SQL generation and error mapping of the asyncpg record store
- test_metrics.py: HIR / RTR / PHR / BCR indices and the metrics aggregate
- test_behavior_scores.py: Per-behavior sub-scores, idempotent refresh, trends
- test_outcomes.py: Conversion rate, field growth, prescription index, refresh
- test_competitor_signals.py: Keyword/pattern detector, per-day dedupe
- test_correlation.py: Pearson weights, period alignment, top-N summaries
- test_coaching.py: Coaching rules, action text, save/resolve lifecycle
- test_recommendations.py: Next best action ranking
- test_team.py: Team membership and manager KPIs
- test_identity.py: Subject -> user id resolution and TTL cache
- test_api.py: Routing, identity header and error -> status mapping

Running Tests:
--------------
    pip install -e ".[test]"
    pytest -v

Configuration:
--------------
See conftest.py for the in-memory record store, record factories and the
fixed test clock.
'''

__all__ = []
