"""
debt.py - Minted-debt accounting and the external debt token

DebtGateway records how much of the stable unit each user has minted and
drives the debt token's mint, pull and burn calls. Like the collateral
ledger it relies on the engine's transaction scope for rollback, and
records how to reverse each completed pull and burn.

Minting is always the last external call of an operation, so a mint is
never reversed.
"""

from __future__ import annotations
from typing import Callable, Dict, Optional

from .core import (
    DebtToken, EventSink, UndoSink, DebtMinted, DebtBurned,
    EngineError, MintFailed, InsufficientDebt,
    checked_burn, checked_transfer, require_positive,
)


HealthCheck = Callable[[str], None]


class DebtGateway:
    """
    Per-user debt scalar plus coordination with the debt token.

    Example:
        gateway = DebtGateway("engine", dsc)
        gateway.mint("alice", to_wei(100), health_check=health.assert_healthy)
        gateway.burn(to_wei(100), on_behalf_of="alice", payer="alice")
    """

    def __init__(
        self,
        custody: str,
        debt_token: DebtToken,
        emit: Optional[EventSink] = None,
        record_undo: Optional[UndoSink] = None,
    ):
        """
        Args:
            custody: Account id the engine uses on the debt token
            debt_token: Token primitive the engine mints and burns
            emit: Callback receiving each event (default: discard)
            record_undo: Callback receiving the reversal of each completed
                         pull and burn (default: discard)
        """
        self.custody = custody
        self.debt_token = debt_token
        self._emit = emit or (lambda event: None)
        self._record_undo = record_undo or (lambda token, description, undo: None)
        self.debt_minted: Dict[str, int] = {}

    def debt_of(self, user: str) -> int:
        return self.debt_minted.get(user, 0)

    def total_debt(self) -> int:
        return sum(self.debt_minted.values())

    def mint(self, user: str, amount: int, health_check: HealthCheck) -> None:
        """
        Record new debt, check the post-mint health factor, then mint the tokens.

        The health check sees the increased debt. If it fails, the token is
        never asked to mint.

        Raises:
            NeedsMoreThanZero: If amount is zero
            BreaksHealthFactor: If the post-mint health factor is too low
            MintFailed: If the debt token refuses to mint
        """
        require_positive(amount)
        self.debt_minted[user] = self.debt_of(user) + amount
        health_check(user)
        try:
            minted = self.debt_token.mint(user, amount)
        except EngineError:
            raise
        except Exception as exc:
            raise MintFailed(user, amount) from exc
        if minted is False:
            raise MintFailed(user, amount)
        self._emit(DebtMinted(user=user, amount=amount))

    def burn(self, amount: int, on_behalf_of: str, payer: str) -> None:
        """
        Cancel debt of on_behalf_of using stable tokens held by payer.

        The tokens are pulled into custody and destroyed there.

        Raises:
            NeedsMoreThanZero: If amount is zero
            InsufficientDebt: If on_behalf_of has less than amount recorded
            TransferFailed: If the pull from payer is refused
            BurnFailed: If the debt token refuses to burn
        """
        require_positive(amount)
        available = self.debt_of(on_behalf_of)
        if amount > available:
            raise InsufficientDebt(on_behalf_of, amount, available)
        self.debt_minted[on_behalf_of] = available - amount
        token = self.debt_token
        checked_transfer(
            lambda: token.transfer_from(payer, self.custody, amount),
            token.symbol, payer, self.custody, amount,
        )
        self._record_undo(
            token, f"return {amount} {token.symbol} to {payer}",
            lambda: self._return_pulled(payer, amount),
        )
        checked_burn(lambda: token.burn(self.custody, amount), token.symbol, self.custody, amount)
        self._record_undo(
            token, f"reissue {amount} burned {token.symbol} to {self.custody}",
            lambda: token.mint(self.custody, amount),
        )
        self._emit(DebtBurned(on_behalf_of=on_behalf_of, payer=payer, amount=amount))

    def _return_pulled(self, payer: str, amount: int) -> bool:
        # The debt token has no push, so custody tokens are destroyed and reissued
        checked_burn(
            lambda: self.debt_token.burn(self.custody, amount),
            self.debt_token.symbol, self.custody, amount,
        )
        return self.debt_token.mint(payer, amount)

    def snapshot(self) -> Dict[str, int]:
        return dict(self.debt_minted)

    def restore(self, state: Dict[str, int]) -> None:
        self.debt_minted = dict(state)
