"""
collateral.py - Per-user, per-asset collateral balances

The CollateralLedger owns the balance table for every supported asset and
moves collateral in and out of engine custody through the asset's token.

Key responsibilities:
    - Credit and debit balances, refusing to go below zero
    - Emit CollateralDeposited / CollateralRedeemed events
    - Pull collateral from depositors and push it to recipients
    - Snapshot and restore its tables for whole-operation rollback

The ledger is not atomic on its own: a failed token pull leaves the credit
in place. The engine runs every call inside a transaction scope that
restores the snapshot on error, and reverses completed token movements
through the undo callbacks recorded here.
"""

from __future__ import annotations
from collections import defaultdict
from typing import Dict, Mapping, Optional, Sequence, Tuple

from .core import (
    BalanceMap, Positions, CollateralToken, EventSink, UndoSink,
    CollateralDeposited, CollateralRedeemed,
    TokenNotAllowed, InsufficientCollateral,
    checked_transfer,
)


Snapshot = Tuple[Dict[str, Dict[str, int]], Dict[str, Dict[str, int]]]


class CollateralLedger:
    """
    Balance table for deposited collateral.

    Example:
        ledger = CollateralLedger("engine", {"WETH": weth})
        ledger.deposit("alice", "WETH", to_wei(10))
        ledger.balance("alice", "WETH")
    """

    def __init__(
        self,
        custody: str,
        tokens: Mapping[str, CollateralToken],
        emit: Optional[EventSink] = None,
        record_undo: Optional[UndoSink] = None,
    ):
        """
        Args:
            custody: Account id that holds deposited collateral on the tokens
            tokens: Asset symbol -> token primitive, in supported-asset order
            emit: Callback receiving each event (default: discard)
            record_undo: Callback receiving the reversal of each completed
                         token movement (default: discard)
        """
        self.custody = custody
        self._tokens: Dict[str, CollateralToken] = dict(tokens)
        self._assets: Tuple[str, ...] = tuple(tokens)
        self._emit = emit or (lambda event: None)
        self._record_undo = record_undo or (lambda token, description, undo: None)
        self.balances: Dict[str, Dict[str, int]] = defaultdict(dict)
        # Inverted index asset -> {user -> amount}, non-zero entries only
        self._positions_by_asset: Dict[str, Dict[str, int]] = {a: {} for a in self._assets}

    # ========================================================================
    # READ-ONLY
    # ========================================================================

    @property
    def assets(self) -> Tuple[str, ...]:
        """Supported assets in construction order."""
        return self._assets

    def is_supported(self, asset: str) -> bool:
        return asset in self._tokens

    def require_supported(self, asset: str) -> None:
        if asset not in self._tokens:
            raise TokenNotAllowed(asset)

    def token(self, asset: str) -> CollateralToken:
        self.require_supported(asset)
        return self._tokens[asset]

    def balance(self, user: str, asset: str) -> int:
        """Deposited amount of asset for user (0 if never deposited)."""
        self.require_supported(asset)
        return self.balances.get(user, {}).get(asset, 0)

    def balances_of(self, user: str) -> BalanceMap:
        """All supported assets for user, including zero balances."""
        held = self.balances.get(user, {})
        return {asset: held.get(asset, 0) for asset in self._assets}

    def positions(self, asset: str) -> Positions:
        """All users with a non-zero balance of asset."""
        self.require_supported(asset)
        return dict(self._positions_by_asset[asset])

    def total_deposited(self, asset: str) -> int:
        self.require_supported(asset)
        return sum(self._positions_by_asset[asset].values())

    # ========================================================================
    # BALANCE DELTAS
    # ========================================================================

    def credit(self, user: str, asset: str, amount: int) -> int:
        """Increase a balance and return the new value."""
        self.require_supported(asset)
        new_balance = self.balances[user].get(asset, 0) + amount
        self._set(user, asset, new_balance)
        return new_balance

    def debit(self, user: str, asset: str, amount: int) -> int:
        """
        Decrease a balance and return the new value.

        Raises:
            InsufficientCollateral: If amount exceeds the recorded balance
        """
        available = self.balance(user, asset)
        if amount > available:
            raise InsufficientCollateral(user, asset, amount, available)
        new_balance = available - amount
        self._set(user, asset, new_balance)
        return new_balance

    def _set(self, user: str, asset: str, amount: int) -> None:
        self.balances[user][asset] = amount
        if amount:
            self._positions_by_asset[asset][user] = amount
        else:
            self._positions_by_asset[asset].pop(user, None)

    # ========================================================================
    # CUSTODY MOVEMENTS
    # ========================================================================

    def deposit(self, user: str, asset: str, amount: int) -> None:
        """
        Record a deposit and pull the collateral into custody.

        The balance is credited and the event emitted before the pull.

        Raises:
            TokenNotAllowed: If asset is not supported
            TransferFailed: If the token refuses the pull
        """
        self.credit(user, asset, amount)
        self._emit(CollateralDeposited(user=user, asset=asset, amount=amount))
        token = self._tokens[asset]
        checked_transfer(
            lambda: token.transfer_from(user, self.custody, amount),
            asset, user, self.custody, amount,
        )
        self._record_undo(
            token, f"return {amount} {asset} from {self.custody} to {user}",
            lambda: token.transfer(self.custody, user, amount),
        )

    def withdraw(self, asset: str, amount: int, from_user: str, to_user: str) -> None:
        """
        Remove collateral from one account and push it to another.

        Used for redemption (from_user == to_user) and for liquidation
        (from the target to the liquidator).

        Raises:
            InsufficientCollateral: If from_user has less than amount deposited
            TransferFailed: If the token refuses the push
        """
        self.debit(from_user, asset, amount)
        self._emit(CollateralRedeemed(
            redeemed_from=from_user,
            redeemed_to=to_user,
            asset=asset,
            amount=amount,
        ))
        token = self._tokens[asset]
        checked_transfer(
            lambda: token.transfer(self.custody, to_user, amount),
            asset, self.custody, to_user, amount,
        )
        self._record_undo(
            token, f"recover {amount} {asset} from {to_user} to {self.custody}",
            lambda: token.transfer(to_user, self.custody, amount),
        )

    # ========================================================================
    # ROLLBACK SUPPORT
    # ========================================================================

    def snapshot(self) -> Snapshot:
        balances = {user: dict(held) for user, held in self.balances.items()}
        positions = {asset: dict(p) for asset, p in self._positions_by_asset.items()}
        return balances, positions

    def restore(self, state: Snapshot) -> None:
        balances, positions = state
        self.balances = defaultdict(dict, {user: dict(held) for user, held in balances.items()})
        self._positions_by_asset = {asset: dict(p) for asset, p in positions.items()}
