"""
engine.py - Collateralized-debt engine facade

The CollateralEngine is the caller-facing entrypoint. It validates inputs,
sequences the collateral ledger, debt gateway and liquidation engine, and
makes every mutating operation atomic.

Key responsibilities:
    - Reject zero amounts, then unsupported assets, before touching state
    - Guard mutating entrypoints against reentrant calls
    - Snapshot every mutable table (and every collaborator that supports it)
      and restore it if any step of an operation fails
    - Enforce the health factor of the account that performed the operation
    - Keep an ordered event log as the audit trail
"""

from __future__ import annotations
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from .core import (
    # Types
    AccountInfo, EngineParameters, DEFAULT_PARAMETERS, Event, Liquidated,
    CollateralToken, DebtToken, PriceFeed, Snapshottable,
    # Constants
    FEED_DECIMALS,
    # Exceptions
    ConfigurationMismatch, ReentrantCall, RollbackIncomplete,
    # Helpers
    require_positive,
)
from .collateral import CollateralLedger
from .debt import DebtGateway
from .health import HealthFactorCalculator, calculate_health_factor
from .liquidation import LiquidationEngine, LiquidationQuote, quote_liquidation
from .oracle import PriceOracle


class CollateralEngine:
    """
    Over-collateralized stable unit issuance with liquidations.

    Not thread-safe. Operations run one at a time; each either commits in
    full or leaves no trace.

    Rollback copies every balance table, and the full state of every
    snapshottable token, at the start of each operation. The cost grows with
    the total number of accounts, not with the accounts an operation touches.
    Tokens that cannot snapshot themselves are rolled back by reversing each
    completed movement instead.

    Example:
        dsc = StableToken(owner="engine")
        engine = CollateralEngine([weth], [StaticPriceFeed(2000 * 10**8)], dsc, name="engine")

        weth.approve("alice", "engine", to_wei(10))
        engine.deposit_collateral_and_mint_debt("alice", "WETH", to_wei(10), to_wei(100))
        engine.health_factor("alice")  # 100e18
    """

    def __init__(
        self,
        collateral_tokens: Sequence[CollateralToken],
        price_feeds: Sequence[PriceFeed],
        debt_token: DebtToken,
        name: str = "engine",
        parameters: EngineParameters = DEFAULT_PARAMETERS,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
    ):
        """
        Create an engine.

        Args:
            collateral_tokens: Supported collateral tokens; each token's symbol is the asset id
            price_feeds: One feed per token, in the same order
            debt_token: Stable token the engine mints and burns (engine must be its owner)
            name: Engine identifier, also its custody account on every token
            parameters: Risk parameters (default: 50% threshold, 10% bonus)
            initial_time: Starting logical time (default: 1970-01-01)
            verbose: Print one line per applied or rejected operation

        Raises:
            ConfigurationMismatch: If the token and feed lists differ in length
                                   or a symbol appears twice
        """
        if len(collateral_tokens) != len(price_feeds):
            raise ConfigurationMismatch(len(collateral_tokens), len(price_feeds))
        symbols = [token.symbol for token in collateral_tokens]
        if len(set(symbols)) != len(symbols):
            raise ConfigurationMismatch(
                len(collateral_tokens), len(price_feeds), "collateral symbols must be unique"
            )

        self.name = name
        self.parameters = parameters
        self.verbose = verbose
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self._debt_token = debt_token
        self._event_log: List[Event] = []
        self._entered = False
        self._undo_log: List[Tuple[Any, str, Callable[[], Any]]] = []

        self.oracle = PriceOracle(
            dict(zip(symbols, price_feeds)), parameters, clock=lambda: self._current_time
        )
        self.collateral = CollateralLedger(
            name, dict(zip(symbols, collateral_tokens)),
            emit=self._event_log.append, record_undo=self._record_undo,
        )
        self.debts = DebtGateway(
            name, debt_token, emit=self._event_log.append, record_undo=self._record_undo,
        )
        self.health = HealthFactorCalculator(self.collateral, self.debts, self.oracle, parameters)
        self.liquidations = LiquidationEngine(
            self.collateral, self.debts, self.health, self.oracle, parameters,
            emit=self._event_log.append,
        )

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time, used for price staleness checks."""
        return self._current_time

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the logical clock. Time can only move forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(f"Cannot move time backwards: {new_time} < {self._current_time}")
        self._current_time = new_time

    # ========================================================================
    # TRANSACTION SCOPE
    # ========================================================================

    def _collaborators(self) -> List[Snapshottable]:
        seen = set()
        found = []
        for obj in (*(self.collateral.token(a) for a in self.collateral.assets), self._debt_token):
            if id(obj) not in seen and isinstance(obj, Snapshottable):
                seen.add(id(obj))
                found.append(obj)
        return found

    def _record_undo(self, token: Any, description: str, undo: Callable[[], Any]) -> None:
        self._undo_log.append((token, description, undo))

    def _snapshot(self) -> Tuple[Any, ...]:
        external = [(obj, obj.snapshot()) for obj in self._collaborators()]
        return (
            self.collateral.snapshot(),
            self.debts.snapshot(),
            len(self._event_log),
            external,
        )

    def _restore(self, state: Tuple[Any, ...]) -> List[str]:
        """
        Put every table back and reverse token movements.

        Snapshottable tokens are restored wholesale. Movements on any other
        token are reversed by replaying the undo log newest first.

        Returns:
            Descriptions of the movements that could not be reversed
        """
        collateral, debts, event_count, external = state
        self.collateral.restore(collateral)
        self.debts.restore(debts)
        del self._event_log[event_count:]

        restored = {id(obj) for obj, _ in external}
        failures = []
        for token, description, undo in reversed(self._undo_log):
            if id(token) in restored:
                continue
            try:
                ok = undo()
            except Exception:
                ok = False
            if ok is False:
                failures.append(description)

        for obj, saved in external:
            obj.restore(saved)
        return failures

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[None]:
        """
        Run one mutating operation atomically under the reentrancy guard.

        A nested entry fails with ReentrantCall before anything is captured.
        Any exception restores the snapshot and is re-raised. If a token
        movement cannot be reversed, RollbackIncomplete is raised instead,
        chained to the original error.
        """
        if self._entered:
            raise ReentrantCall(operation)
        self._entered = True
        self._undo_log = []
        try:
            state = self._snapshot()
            try:
                yield
            except Exception as exc:
                failures = self._restore(state)
                if self.verbose:
                    print(f"✗ REJECTED: {operation}: {type(exc).__name__}: {exc}")
                if failures:
                    raise RollbackIncomplete(operation, failures) from exc
                raise
            if self.verbose:
                print(f"✓ APPLIED: {operation}")
        finally:
            self._undo_log = []
            self._entered = False

    # ========================================================================
    # MUTATING ENTRYPOINTS
    # ========================================================================

    def deposit_collateral(self, user: str, asset: str, amount: int) -> None:
        """
        Deposit amount of asset. user must have approved the engine on the token.

        Raises:
            NeedsMoreThanZero, TokenNotAllowed, TransferFailed, ReentrantCall
        """
        require_positive(amount, "amount_collateral")
        self.collateral.require_supported(asset)
        with self._transaction(f"deposit_collateral({user}, {asset}, {amount})"):
            self.collateral.deposit(user, asset, amount)

    def mint_debt(self, user: str, amount: int) -> None:
        """
        Mint amount of the stable unit against user's collateral.

        Raises:
            NeedsMoreThanZero, BreaksHealthFactor, MintFailed, ReentrantCall
        """
        require_positive(amount, "amount_debt")
        with self._transaction(f"mint_debt({user}, {amount})"):
            self.debts.mint(user, amount, health_check=self.health.assert_healthy)

    def deposit_collateral_and_mint_debt(
        self,
        user: str,
        asset: str,
        amount_collateral: int,
        amount_debt: int,
    ) -> None:
        """Deposit collateral and mint debt in one atomic operation."""
        require_positive(amount_collateral, "amount_collateral")
        require_positive(amount_debt, "amount_debt")
        self.collateral.require_supported(asset)
        with self._transaction(
            f"deposit_collateral_and_mint_debt({user}, {asset}, {amount_collateral}, {amount_debt})"
        ):
            self.collateral.deposit(user, asset, amount_collateral)
            self.debts.mint(user, amount_debt, health_check=self.health.assert_healthy)

    def redeem_collateral(self, user: str, asset: str, amount: int) -> None:
        """
        Withdraw amount of asset back to user, keeping user healthy.

        Raises:
            NeedsMoreThanZero, TokenNotAllowed, InsufficientCollateral,
            TransferFailed, BreaksHealthFactor, ReentrantCall
        """
        require_positive(amount, "amount_collateral")
        self.collateral.require_supported(asset)
        with self._transaction(f"redeem_collateral({user}, {asset}, {amount})"):
            self.collateral.withdraw(asset, amount, user, user)
            self.health.assert_healthy(user)

    def redeem_collateral_for_debt(
        self,
        user: str,
        asset: str,
        amount_collateral: int,
        amount_debt: int,
    ) -> None:
        """Burn debt, then redeem collateral, in one atomic operation."""
        require_positive(amount_collateral, "amount_collateral")
        require_positive(amount_debt, "amount_debt")
        self.collateral.require_supported(asset)
        with self._transaction(
            f"redeem_collateral_for_debt({user}, {asset}, {amount_collateral}, {amount_debt})"
        ):
            self.debts.burn(amount_debt, on_behalf_of=user, payer=user)
            self.collateral.withdraw(asset, amount_collateral, user, user)
            self.health.assert_healthy(user)

    def burn_debt(self, user: str, amount: int) -> None:
        """
        Repay amount of user's own debt with user's stable tokens.

        Raises:
            NeedsMoreThanZero, InsufficientDebt, TransferFailed, ReentrantCall
        """
        require_positive(amount, "amount_debt")
        with self._transaction(f"burn_debt({user}, {amount})"):
            self.debts.burn(amount, on_behalf_of=user, payer=user)
            self.health.assert_healthy(user)

    def liquidate(self, liquidator: str, asset: str, target: str, debt_to_cover: int) -> Liquidated:
        """
        Cover debt_to_cover of target's debt and seize asset plus a bonus.

        liquidator must hold and have approved debt_to_cover stable tokens.

        Returns:
            The Liquidated record

        Raises:
            NeedsMoreThanZero, TokenNotAllowed, HealthFactorOkay,
            InsufficientCollateral, InsufficientDebt, TransferFailed,
            HealthFactorNotImproved, BreaksHealthFactor, ReentrantCall
        """
        require_positive(debt_to_cover, "debt_to_cover")
        self.collateral.require_supported(asset)
        with self._transaction(f"liquidate({liquidator}, {asset}, {target}, {debt_to_cover})"):
            return self.liquidations.liquidate(asset, target, liquidator, debt_to_cover)

    # ========================================================================
    # QUERIES
    # ========================================================================

    def health_factor(self, user: str) -> int:
        return self.health.health_factor(user)

    def account_info(self, user: str) -> AccountInfo:
        return self.health.account_info(user)

    def calculate_health_factor(self, debt_minted: int, collateral_value_usd: int) -> int:
        return calculate_health_factor(debt_minted, collateral_value_usd, self.parameters)

    def max_mintable(self, user: str) -> int:
        """Additional debt user could mint right now."""
        return self.health.max_mintable(user)

    def usd_value(self, asset: str, amount: int) -> int:
        return self.oracle.usd_value(asset, amount)

    def token_amount_from_usd(self, asset: str, usd_amount: int) -> int:
        return self.oracle.token_amount_from_usd(asset, usd_amount)

    def quote_liquidation(self, asset: str, debt_to_cover: int) -> LiquidationQuote:
        self.collateral.require_supported(asset)
        return quote_liquidation(self.oracle, asset, debt_to_cover, self.parameters)

    def collateral_balance(self, user: str, asset: str) -> int:
        return self.collateral.balance(user, asset)

    def total_collateral_value(self, user: str) -> int:
        return self.health.collateral_value(user)

    def debt_minted(self, user: str) -> int:
        return self.debts.debt_of(user)

    def supported_assets(self) -> Tuple[str, ...]:
        return self.collateral.assets

    def price_feed(self, asset: str) -> PriceFeed:
        return self.oracle.price_feed(asset)

    def collateral_token(self, asset: str) -> CollateralToken:
        return self.collateral.token(asset)

    @property
    def debt_token(self) -> DebtToken:
        return self._debt_token

    @property
    def events(self) -> Tuple[Event, ...]:
        """Every event emitted by committed operations, oldest first."""
        return tuple(self._event_log)

    def min_health_factor(self) -> int:
        return self.parameters.min_health_factor

    def liquidation_threshold(self) -> int:
        return self.parameters.liquidation_threshold

    def liquidation_bonus(self) -> int:
        return self.parameters.liquidation_bonus

    def liquidation_precision(self) -> int:
        return self.parameters.liquidation_precision

    def precision(self) -> int:
        return self.parameters.precision

    def additional_feed_precision(self) -> int:
        """Multiplier that brings a standard 8-decimal feed answer to engine precision."""
        return self.parameters.precision // 10 ** FEED_DECIMALS

    def summary(self) -> Dict[str, Any]:
        """Totals per asset and overall debt, for reporting."""
        return {
            'collateral': {a: self.collateral.total_deposited(a) for a in self.collateral.assets},
            'debt': self.debts.total_debt(),
            'events': len(self._event_log),
        }

    def __repr__(self):
        return f"CollateralEngine({self.name}, assets={list(self.collateral.assets)})"
