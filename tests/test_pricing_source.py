"""
test_pricing_source.py - Unit tests for pricing_source.py

Tests:
- StaticPriceFeed: fixed answers, updates as new rounds
- TimeSeriesPriceFeed: answers in effect at the clock's time
"""

import pytest
from datetime import datetime, timedelta

from cdp_ledger import StaticPriceFeed, TimeSeriesPriceFeed, PriceFeed


class TestStaticPriceFeed:
    """Tests for StaticPriceFeed."""

    def test_satisfies_protocol(self):
        assert isinstance(StaticPriceFeed(1), PriceFeed)

    def test_latest_price(self):
        reading = StaticPriceFeed(2000 * 10 ** 8).latest_price()
        assert reading.answer == 2000 * 10 ** 8
        assert reading.decimals == 8
        assert reading.round_id == 1
        assert reading.answered_in_round == 1

    def test_update_answer_starts_new_round(self):
        feed = StaticPriceFeed(2000 * 10 ** 8)
        t = datetime(2025, 1, 15)
        feed.update_answer(1800 * 10 ** 8, updated_at=t)

        reading = feed.latest_price()
        assert reading.answer == 1800 * 10 ** 8
        assert reading.round_id == 2
        assert reading.updated_at == t

    def test_custom_decimals(self):
        assert StaticPriceFeed(2000 * 10 ** 18, decimals=18).latest_price().decimals == 18

    def test_repr(self):
        assert 'StaticPriceFeed' in repr(StaticPriceFeed(1))


class TestTimeSeriesPriceFeed:
    """Tests for TimeSeriesPriceFeed."""

    t0 = datetime(2025, 1, 1)
    t1 = datetime(2025, 1, 2)

    def test_empty_history(self):
        feed = TimeSeriesPriceFeed(clock=lambda: self.t0)
        assert feed.latest_price() is None

    def test_before_first_observation(self):
        feed = TimeSeriesPriceFeed([(self.t1, 5)])
        assert feed.price_at(self.t0) is None

    def test_price_at(self):
        feed = TimeSeriesPriceFeed([(self.t0, 2000 * 10 ** 8), (self.t1, 1500 * 10 ** 8)])

        assert feed.price_at(self.t0).answer == 2000 * 10 ** 8
        assert feed.price_at(self.t0 + timedelta(hours=12)).answer == 2000 * 10 ** 8
        assert feed.price_at(self.t1).answer == 1500 * 10 ** 8

    def test_rounds_follow_chronology(self):
        feed = TimeSeriesPriceFeed()
        feed.add_answer(self.t1, 2)
        feed.add_answer(self.t0, 1)

        assert feed.price_at(self.t0).round_id == 1
        later = feed.price_at(self.t1 + timedelta(days=1))
        assert later.round_id == 2
        assert later.updated_at == self.t1

    def test_latest_price_follows_clock(self):
        now = [self.t0]
        feed = TimeSeriesPriceFeed(
            [(self.t0, 2000 * 10 ** 8), (self.t1, 1500 * 10 ** 8)], clock=lambda: now[0]
        )
        assert feed.latest_price().answer == 2000 * 10 ** 8
        now[0] = self.t1
        assert feed.latest_price().answer == 1500 * 10 ** 8

    def test_repr(self):
        assert '2 observations' in repr(TimeSeriesPriceFeed([(self.t0, 1), (self.t1, 2)]))
