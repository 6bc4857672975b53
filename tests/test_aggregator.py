# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Tests for session statistics."""

import random
from datetime import timedelta

import pytest

from sleepguard.models.session import SessionStats
from sleepguard.session.aggregator import (
    SessionAggregator,
    compute_stats,
    events_per_hour,
    severity_category,
    severity_score,
    summary_severity_score,
)
from tests.fakes import FakeClock, make_event


def _random_events(rng, count):
    return [
        make_event(rng.choice(["normal", "apnea"]), rng.random())
        for _ in range(count)
    ]


@pytest.mark.unit
class TestSessionAggregator:
    def test_empty_session_has_zero_stats(self):
        agg = SessionAggregator(clock=FakeClock())
        agg.reset()

        stats = agg.stats
        assert stats.total_events == 0
        assert stats.apnea_percentage == 0
        assert stats.average_confidence == 0
        assert stats.severity_score == 0

    def test_three_event_scenario(self):
        agg = SessionAggregator(clock=FakeClock())
        agg.reset()

        agg.on_event(make_event("apnea", 0.8))
        agg.on_event(make_event("normal", 0.2))
        stats = agg.on_event(make_event("apnea", 0.9))

        assert stats.total_events == 3
        assert stats.apnea_count == 2
        assert stats.normal_count == 1
        assert stats.apnea_percentage == pytest.approx(66.67, abs=0.01)
        assert stats.average_confidence == pytest.approx(0.633, abs=0.001)
        assert stats.severity_score == pytest.approx(65.67, abs=0.01)

    @pytest.mark.parametrize("seed", range(5))
    def test_counts_invariant_and_severity_bounds(self, seed):
        rng = random.Random(seed)
        agg = SessionAggregator(clock=FakeClock())
        agg.reset()

        for event in _random_events(rng, rng.randint(0, 1000)):
            stats = agg.on_event(event)
            assert stats.apnea_count + stats.normal_count == stats.total_events
            assert stats.apnea_count >= 0 and stats.normal_count >= 0
            assert 0.0 <= stats.severity_score <= 100.0

    @pytest.mark.parametrize("count", [0, 1, 17, 1000])
    def test_incremental_matches_full_recompute(self, count):
        rng = random.Random(count)
        events = _random_events(rng, count)
        agg = SessionAggregator(clock=FakeClock())
        agg.reset()

        for event in events:
            agg.on_event(event)

        assert agg.stats == compute_stats(events)
        assert agg.verify()

    def test_severity_clamped_at_100(self):
        stats = compute_stats([make_event("apnea", 1.0) for _ in range(10)])
        assert stats.severity_score == 100.0
        assert severity_score(150.0, 1.0) == 100.0

    def test_on_tick_only_updates_elapsed(self):
        clock = FakeClock()
        agg = SessionAggregator(clock=clock)
        agg.reset()
        agg.on_event(make_event("apnea", 0.9))
        before = agg.stats

        clock.advance(42)
        after = agg.on_tick()

        assert after.elapsed_seconds == pytest.approx(42.0)
        assert after.total_events == before.total_events
        assert after.severity_score == before.severity_score

    def test_reset_clears_previous_session(self):
        clock = FakeClock()
        agg = SessionAggregator(clock=clock)
        agg.reset()
        agg.on_event(make_event("apnea", 0.9))

        agg.reset()

        assert agg.stats == SessionStats()
        assert agg.events == []

    def test_reset_replays_restored_events(self):
        clock = FakeClock()
        agg = SessionAggregator(clock=clock)
        events = [make_event("apnea", 0.9), make_event("normal", 0.1)]

        stats = agg.reset(clock() - timedelta(seconds=30), events)

        assert stats.total_events == 2
        assert stats.elapsed_seconds == pytest.approx(30.0)

    def test_events_are_kept_in_order(self):
        agg = SessionAggregator(clock=FakeClock())
        agg.reset()
        events = [make_event("normal", 0.1 * i) for i in range(5)]
        for event in events:
            agg.on_event(event)

        assert agg.events == events


@pytest.mark.unit
class TestSummaryMetrics:
    def test_summary_severity_is_a_separate_metric(self):
        stats = compute_stats([
            make_event("apnea", 0.8),
            make_event("normal", 0.2),
            make_event("apnea", 0.9),
        ])
        summary = summary_severity_score(stats.apnea_percentage, stats.average_confidence)

        # 66.67 * 0.633 * 1.5
        assert summary == pytest.approx(63.33, abs=0.01)
        assert summary != pytest.approx(stats.severity_score)

    def test_summary_severity_clamped(self):
        assert summary_severity_score(100.0, 1.0) == 100.0

    def test_events_per_hour(self):
        assert events_per_hour(10, 3600) == pytest.approx(10.0)
        assert events_per_hour(5, 0) == 0.0

    @pytest.mark.parametrize("rate,category", [
        (0, "normal"),
        (5, "normal"),
        (5.5, "mild"),
        (16, "moderate"),
        (31, "severe"),
    ])
    def test_severity_category(self, rate, category):
        assert severity_category(rate) == category
