"""
oracle.py - Price normalization and asset/USD conversion

Feeds report signed answers with their own precision. PriceOracle validates
each reading and scales it to the engine's 18-decimal precision before
converting between asset amounts and USD.

Every call re-reads the feed. Nothing is cached, so two calls within one
operation see whatever the feed reports at that moment.
"""

from __future__ import annotations
from datetime import datetime
from typing import Callable, Dict, Mapping, Optional

from .core import (
    PriceFeed, PriceReading, EngineParameters, DEFAULT_PARAMETERS,
    EngineError, TokenNotAllowed, PriceFeedUnavailable, InvalidPrice, StalePrice,
)


def normalize_price(answer: int, decimals: int, precision: int) -> int:
    """
    Scale a feed answer to the engine precision.

    Args:
        answer: Positive feed answer
        decimals: Decimals of the answer
        precision: Target scale (10**18 for the default engine)

    Returns:
        answer expressed in precision units (truncated if the feed is finer)
    """
    feed_scale = 10 ** decimals
    if precision >= feed_scale:
        return answer * (precision // feed_scale)
    return answer // (feed_scale // precision)


def check_staleness(
    asset: str,
    reading: PriceReading,
    now: datetime,
    parameters: EngineParameters,
) -> None:
    """
    Reject readings older than the configured timeout.

    A reading is stale when it has never been updated, when its answer was
    carried over from an earlier round, or when it is older than the timeout.
    Does nothing if no timeout is configured.
    """
    timeout = parameters.price_timeout
    if timeout is None:
        return
    if reading.updated_at is None or reading.answered_in_round < reading.round_id:
        raise StalePrice(asset, reading.updated_at, now)
    if now - reading.updated_at > timeout:
        raise StalePrice(asset, reading.updated_at, now)


class PriceOracle:
    """
    Read-only adapter over one price feed per supported asset.

    Example:
        oracle = PriceOracle({"WETH": StaticPriceFeed(2000 * 10**8)})
        oracle.usd_value("WETH", to_wei(15))       # 30000e18
        oracle.token_amount_from_usd("WETH", to_wei(100))  # 0.05e18
    """

    def __init__(
        self,
        price_feeds: Mapping[str, PriceFeed],
        parameters: EngineParameters = DEFAULT_PARAMETERS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            price_feeds: Asset symbol -> feed
            parameters: Engine parameters (precision and optional price timeout)
            clock: Returns the current logical time for staleness checks
        """
        self._feeds: Dict[str, PriceFeed] = dict(price_feeds)
        self.parameters = parameters
        self._clock = clock or datetime.now

    def price_feed(self, asset: str) -> PriceFeed:
        if asset not in self._feeds:
            raise TokenNotAllowed(asset)
        return self._feeds[asset]

    def latest_reading(self, asset: str) -> PriceReading:
        """
        Read and validate the latest price for asset.

        Raises:
            TokenNotAllowed: If asset has no registered feed
            PriceFeedUnavailable: If the feed fails or returns nothing
            InvalidPrice: If the answer is zero or negative
            StalePrice: If a timeout is configured and the reading is too old
        """
        feed = self.price_feed(asset)
        try:
            reading = feed.latest_price()
        except EngineError:
            raise
        except Exception as exc:
            raise PriceFeedUnavailable(asset) from exc
        if reading is None:
            raise PriceFeedUnavailable(asset)
        if reading.answer <= 0:
            raise InvalidPrice(asset, reading.answer)
        check_staleness(asset, reading, self._clock(), self.parameters)
        return reading

    def normalized_price(self, asset: str) -> int:
        """USD price of one whole unit of asset, in engine precision."""
        reading = self.latest_reading(asset)
        return normalize_price(reading.answer, reading.decimals, self.parameters.precision)

    def usd_value(self, asset: str, amount: int) -> int:
        """USD value of amount (asset-native units), 18-decimal fixed point."""
        price = self.normalized_price(asset)
        return amount * price // self.parameters.precision

    def token_amount_from_usd(self, asset: str, usd_amount: int) -> int:
        """
        Amount of asset worth usd_amount.

        Truncates, so usd_value(token_amount_from_usd(x)) may be slightly below x.
        """
        price = self.normalized_price(asset)
        return usd_amount * self.parameters.precision // price
