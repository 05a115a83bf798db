"""
Core types and pure helpers for the collateralized-debt engine.

This module provides the foundational pieces shared by every component:
1. Constants: fixed-point precision, liquidation threshold and bonus
2. Protocols: CollateralToken, DebtToken, PriceFeed, Snapshottable
3. Immutable data structures: PriceReading, AccountInfo, EngineParameters, events
4. Exceptions: EngineError and the domain-specific error taxonomy
5. Helpers: fixed-point conversion and checked collaborator calls

All amounts are Python ints in fixed-point units. Collateral amounts use the
asset's native units, debt and USD values use 18 decimals. Every division in
the engine is a floor division on non-negative integers.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_DOWN
from typing import (
    Any, Callable, Dict, List, Optional, Protocol, Union, runtime_checkable
)


# ============================================================================
# CONSTANTS
# ============================================================================

# 18-decimal fixed point used for debt, USD values and health factors.
PRECISION = 10 ** 18

# Decimals reported by conventional USD price feeds.
FEED_DECIMALS = 8

# Multiplier bringing an 8-decimal feed answer up to PRECISION.
ADDITIONAL_FEED_PRECISION = PRECISION // 10 ** FEED_DECIMALS

# Percentage of collateral value that counts toward borrowing capacity.
# 50 means a position must be 200% over-collateralized.
LIQUIDATION_THRESHOLD = 50
LIQUIDATION_PRECISION = 100

# Extra collateral awarded to a liquidator, in percent of the covered amount.
LIQUIDATION_BONUS = 10

MIN_HEALTH_FACTOR = PRECISION

# Health factor reported for accounts with no debt.
MAX_HEALTH_FACTOR = 2 ** 256 - 1

# Staleness window used when a feed timeout is switched on without a value.
DEFAULT_PRICE_TIMEOUT = timedelta(hours=3)


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from asset symbol to amount held by a single user.
BalanceMap = Dict[str, int]

# Mapping from user id to amount of a single asset.
Positions = Dict[str, int]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class EngineError(Exception):
    """Base exception for all engine errors."""
    pass


class ValidationError(EngineError):
    """Input rejected before any state mutation."""
    pass


class NeedsMoreThanZero(ValidationError):
    """Raised when a mutating entrypoint receives a zero amount."""

    def __init__(self, argument: str = "amount"):
        self.argument = argument
        super().__init__(f"{argument} must be more than zero")


class TokenNotAllowed(ValidationError):
    """Raised when an asset is not in the engine's allow-list."""

    def __init__(self, asset: str):
        self.asset = asset
        super().__init__(f"Asset {asset!r} is not an allowed collateral")


class ConfigurationMismatch(ValidationError):
    """Raised at construction when assets and price feeds do not pair up."""

    def __init__(self, assets: int, price_feeds: int, reason: str = ""):
        self.assets = assets
        self.price_feeds = price_feeds
        detail = reason or "asset and price feed lists must be the same length"
        super().__init__(f"{detail} (assets={assets}, price_feeds={price_feeds})")


class TransferError(EngineError):
    """An external token transfer, pull or push was refused."""
    pass


class TransferFailed(TransferError):
    def __init__(self, asset: str, sender: str, recipient: str, amount: int):
        self.asset = asset
        self.sender = sender
        self.recipient = recipient
        self.amount = amount
        super().__init__(f"Transfer of {amount} {asset} from {sender} to {recipient} failed")


class BurnFailed(TransferError):
    def __init__(self, asset: str, holder: str, amount: int):
        self.asset = asset
        self.holder = holder
        self.amount = amount
        super().__init__(f"Burning {amount} {asset} held by {holder} failed")


class MintError(EngineError):
    """The external debt token refused to mint."""
    pass


class MintFailed(MintError):
    def __init__(self, user: str, amount: int):
        self.user = user
        self.amount = amount
        super().__init__(f"Minting {amount} debt to {user} failed")


class HealthFactorViolation(EngineError):
    """Post-mutation health factor is below the minimum."""
    pass


class BreaksHealthFactor(HealthFactorViolation):
    def __init__(self, health_factor: int, user: Optional[str] = None):
        self.health_factor = health_factor
        self.user = user
        who = f" for {user}" if user else ""
        super().__init__(f"Health factor {health_factor} is below the minimum{who}")


class LiquidationPrecondition(EngineError):
    """Liquidation refused because the target is healthy."""
    pass


class HealthFactorOkay(LiquidationPrecondition):
    def __init__(self, health_factor: int):
        self.health_factor = health_factor
        super().__init__(f"Health factor {health_factor} is not below the minimum")


class LiquidationIneffective(EngineError):
    """Liquidation did not restore the target above the minimum."""
    pass


class HealthFactorNotImproved(LiquidationIneffective):
    def __init__(self, health_factor: int):
        self.health_factor = health_factor
        super().__init__(f"Health factor {health_factor} not restored above the minimum")


class InsufficientBalance(EngineError, ArithmeticError):
    """Raised when withdrawing or burning more than the recorded balance."""

    def __init__(self, requested: int, available: int, message: str = ""):
        self.requested = requested
        self.available = available
        super().__init__(message or f"Requested {requested}, available {available}")


class InsufficientCollateral(InsufficientBalance):
    def __init__(self, user: str, asset: str, requested: int, available: int):
        self.user = user
        self.asset = asset
        super().__init__(
            requested, available,
            f"{user} has {available} {asset} deposited, cannot remove {requested}",
        )


class InsufficientDebt(InsufficientBalance):
    def __init__(self, user: str, requested: int, available: int):
        self.user = user
        super().__init__(
            requested, available,
            f"{user} has {available} debt recorded, cannot burn {requested}",
        )


class OracleError(EngineError):
    """The price feed could not produce a usable reading."""
    pass


class PriceFeedUnavailable(OracleError):
    def __init__(self, asset: str):
        self.asset = asset
        super().__init__(f"Price feed for {asset} returned no reading")


class InvalidPrice(OracleError):
    def __init__(self, asset: str, answer: int):
        self.asset = asset
        self.answer = answer
        super().__init__(f"Price feed for {asset} reported non-positive answer {answer}")


class StalePrice(OracleError):
    def __init__(self, asset: str, updated_at: Optional[datetime], now: datetime):
        self.asset = asset
        self.updated_at = updated_at
        self.now = now
        super().__init__(f"Price for {asset} is stale (updated {updated_at}, now {now})")


class ReentrantCall(EngineError):
    """Raised when a guarded entrypoint is entered while another is running."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Reentrant call to {operation}")


class RollbackIncomplete(EngineError):
    """
    Raised when an external token movement could not be reversed during
    rollback. The engine's own tables are restored regardless; failures
    lists the movements left in place.
    """

    def __init__(self, operation: str, failures: List[str]):
        self.operation = operation
        self.failures = failures
        super().__init__(f"Rollback of {operation} left {len(failures)} token movement(s) in place: {failures}")


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class CollateralToken(Protocol):
    """
    Fungible token used as collateral.

    The sender of every transfer is explicit. Implementations may signal
    failure by returning False or by raising; the engine treats both alike.
    """
    symbol: str

    def transfer_from(self, sender: str, recipient: str, amount: int) -> bool:
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        ...

    def balance_of(self, account: str) -> int:
        ...


@runtime_checkable
class DebtToken(Protocol):
    """Stable unit issued against collateral. Only the engine mints and burns."""
    symbol: str

    def mint(self, to: str, amount: int) -> bool:
        ...

    def burn(self, holder: str, amount: int) -> None:
        ...

    def transfer_from(self, sender: str, recipient: str, amount: int) -> bool:
        ...

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        ...

    def balance_of(self, account: str) -> int:
        ...


@runtime_checkable
class PriceFeed(Protocol):
    """Black-box oracle returning its latest reading for one asset."""

    def latest_price(self) -> 'PriceReading':
        ...


@runtime_checkable
class Snapshottable(Protocol):
    """Collaborator whose state can be captured and put back on rollback."""

    def snapshot(self) -> Any:
        ...

    def restore(self, state: Any) -> None:
        ...


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class PriceReading:
    """
    One round reported by a price feed.

    Attributes:
        answer: Signed fixed-point price in USD.
        decimals: Fixed-point precision of answer.
        round_id: Round that produced the answer.
        answered_in_round: Round in which the answer was computed.
        updated_at: When the answer was last updated (None if never).
    """
    answer: int
    decimals: int = FEED_DECIMALS
    round_id: int = 1
    answered_in_round: int = 1
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if not isinstance(self.answer, int) or isinstance(self.answer, bool):
            raise ValueError(f"PriceReading answer must be int, got {type(self.answer)}")
        if self.decimals < 0:
            raise ValueError(f"PriceReading decimals must be non-negative, got {self.decimals}")


@dataclass(frozen=True, slots=True)
class AccountInfo:
    """Debt and collateral value of one account, both 18-decimal fixed point."""
    debt_minted: int
    collateral_value_usd: int


@dataclass(frozen=True, slots=True)
class EngineParameters:
    """
    Immutable risk parameters, fixed at construction.

    Attributes:
        precision: Fixed-point scale for debt, USD values and health factors.
        liquidation_threshold: Percent of collateral value usable as borrowing capacity.
        liquidation_precision: Denominator for threshold and bonus percentages.
        liquidation_bonus: Percent of covered collateral paid to liquidators on top.
        min_health_factor: Lowest health factor an account may keep.
        price_timeout: Maximum feed age; None disables the staleness check.
    """
    precision: int = PRECISION
    liquidation_threshold: int = LIQUIDATION_THRESHOLD
    liquidation_precision: int = LIQUIDATION_PRECISION
    liquidation_bonus: int = LIQUIDATION_BONUS
    min_health_factor: int = MIN_HEALTH_FACTOR
    price_timeout: Optional[timedelta] = None

    def __post_init__(self):
        if self.precision <= 0:
            raise ValueError(f"precision must be positive, got {self.precision}")
        if self.liquidation_precision <= 0:
            raise ValueError(f"liquidation_precision must be positive, got {self.liquidation_precision}")
        if not 0 < self.liquidation_threshold <= self.liquidation_precision:
            raise ValueError(
                f"liquidation_threshold must be in (0, {self.liquidation_precision}], "
                f"got {self.liquidation_threshold}"
            )
        if self.liquidation_bonus < 0:
            raise ValueError(f"liquidation_bonus cannot be negative, got {self.liquidation_bonus}")
        if self.min_health_factor <= 0:
            raise ValueError(f"min_health_factor must be positive, got {self.min_health_factor}")
        if self.price_timeout is not None and self.price_timeout <= timedelta(0):
            raise ValueError(f"price_timeout must be positive, got {self.price_timeout}")


DEFAULT_PARAMETERS = EngineParameters()


# ============================================================================
# EVENTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class CollateralDeposited:
    user: str
    asset: str
    amount: int


@dataclass(frozen=True, slots=True)
class CollateralRedeemed:
    redeemed_from: str
    redeemed_to: str
    asset: str
    amount: int


@dataclass(frozen=True, slots=True)
class DebtMinted:
    user: str
    amount: int


@dataclass(frozen=True, slots=True)
class DebtBurned:
    on_behalf_of: str
    payer: str
    amount: int


@dataclass(frozen=True, slots=True)
class Liquidated:
    """
    Record of a completed liquidation.

    collateral_seized includes the bonus; health factors are taken before
    and after the forced transfer.
    """
    target: str
    liquidator: str
    asset: str
    debt_covered: int
    collateral_seized: int
    bonus: int
    start_health_factor: int
    end_health_factor: int


Event = Union[CollateralDeposited, CollateralRedeemed, DebtMinted, DebtBurned, Liquidated]
EventSink = Callable[[Event], None]

# Receives (collaborator, description, undo) after each external token
# movement succeeds. undo reverses the movement.
UndoSink = Callable[[Any, str, Callable[[], Any]], None]


# ============================================================================
# HELPERS
# ============================================================================

def to_wei(value: Union[int, str, Decimal], decimals: int = 18) -> int:
    """
    Convert a human-readable amount to fixed-point units.

    Strings and Decimals are taken exactly; anything below the last decimal
    place is truncated.

    Example:
        to_wei("0.05") == 50_000_000_000_000_000
    """
    if isinstance(value, float):
        raise TypeError("to_wei does not accept float; pass a str or Decimal")
    scaled = (Decimal(value) * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_DOWN)
    return int(scaled)


def from_wei(amount: int, decimals: int = 18) -> Decimal:
    """Convert fixed-point units back to a Decimal."""
    return Decimal(amount) / (Decimal(10) ** decimals)


def require_positive(amount: int, argument: str = "amount") -> None:
    """Reject zero amounts with NeedsMoreThanZero."""
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise TypeError(f"{argument} must be int, got {type(amount).__name__}")
    if amount < 0:
        raise ValueError(f"{argument} cannot be negative, got {amount}")
    if amount == 0:
        raise NeedsMoreThanZero(argument)


def checked_transfer(
    action: Callable[[], Any],
    asset: str,
    sender: str,
    recipient: str,
    amount: int,
) -> None:
    """
    Run a token transfer and normalize its failure to TransferFailed.

    A False return and a raised exception are both failures. EngineErrors
    raised from inside the collaborator (such as a reentrant call back into
    the engine) propagate unchanged.
    """
    try:
        ok = action()
    except EngineError:
        raise
    except Exception as exc:
        raise TransferFailed(asset, sender, recipient, amount) from exc
    if ok is False:
        raise TransferFailed(asset, sender, recipient, amount)


def checked_burn(action: Callable[[], Any], asset: str, holder: str, amount: int) -> None:
    """Run a token burn and normalize its failure to BurnFailed."""
    try:
        ok = action()
    except EngineError:
        raise
    except Exception as exc:
        raise BurnFailed(asset, holder, amount) from exc
    if ok is False:
        raise BurnFailed(asset, holder, amount)
