"""
pricing_source.py - Price feeds for collateral valuation

Reference implementations of the PriceFeed protocol:
- StaticPriceFeed: a single answer, updated manually (each update is a new round)
- TimeSeriesPriceFeed: historical answers, read at the current logical time

Both report answers as signed fixed-point integers with 8 decimals by
default, matching common USD oracle conventions.
"""

from bisect import bisect_right
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from .core import PriceReading, FEED_DECIMALS


class StaticPriceFeed:
    """
    Price feed holding one answer until it is updated.

    Example:
        feed = StaticPriceFeed(2000 * 10**8)
        feed.update_answer(1800 * 10**8)
        feed.latest_price().round_id  # 2
    """

    def __init__(
        self,
        answer: int,
        decimals: int = FEED_DECIMALS,
        updated_at: Optional[datetime] = None,
    ):
        self.decimals = decimals
        self.round_id = 0
        self.answer = answer
        self.updated_at: Optional[datetime] = None
        self.update_answer(answer, updated_at)

    def update_answer(self, answer: int, updated_at: Optional[datetime] = None) -> None:
        """Publish a new answer as the next round."""
        self.answer = answer
        self.updated_at = updated_at
        self.round_id += 1

    def latest_price(self) -> PriceReading:
        return PriceReading(
            answer=self.answer,
            decimals=self.decimals,
            round_id=self.round_id,
            answered_in_round=self.round_id,
            updated_at=self.updated_at,
        )

    def __repr__(self):
        return f"StaticPriceFeed(answer={self.answer}, decimals={self.decimals}, round={self.round_id})"


class TimeSeriesPriceFeed:
    """
    Price feed backed by a history of (timestamp, answer) observations.

    latest_price() returns the most recent observation at or before the time
    reported by clock. Each observation is its own round, numbered from 1 in
    chronological order.

    Example:
        feed = TimeSeriesPriceFeed(
            [(t0, 2000 * 10**8), (t1, 1500 * 10**8)],
            clock=lambda: engine.current_time,
        )
    """

    def __init__(
        self,
        observations: Optional[List[Tuple[datetime, int]]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        decimals: int = FEED_DECIMALS,
    ):
        self.decimals = decimals
        self._clock = clock or datetime.now
        self.history: List[Tuple[datetime, int]] = sorted(observations or [], key=lambda x: x[0])

    def add_answer(self, timestamp: datetime, answer: int) -> None:
        """Record an observation, keeping the history sorted by timestamp."""
        self.history.append((timestamp, answer))
        self.history.sort(key=lambda x: x[0])

    def price_at(self, timestamp: datetime) -> Optional[PriceReading]:
        """
        Reading in effect at timestamp, or None if no observation precedes it.

        Uses binary search for O(log n) lookup.
        """
        timestamps = [ts for ts, _ in self.history]
        idx = bisect_right(timestamps, timestamp)
        if idx == 0:
            return None
        updated_at, answer = self.history[idx - 1]
        return PriceReading(
            answer=answer,
            decimals=self.decimals,
            round_id=idx,
            answered_in_round=idx,
            updated_at=updated_at,
        )

    def latest_price(self) -> Optional[PriceReading]:
        return self.price_at(self._clock())

    def __repr__(self):
        return f"TimeSeriesPriceFeed({len(self.history)} observations, decimals={self.decimals})"
