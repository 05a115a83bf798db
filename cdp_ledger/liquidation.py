"""
liquidation.py - Forced rebalancing of unsafe accounts

A liquidator repays part of an unsafe account's debt with their own stable
tokens and receives the equivalent collateral plus a bonus.

Protocol (single shot, nothing persisted between steps):
    1. Refuse if the target's health factor is at or above the minimum
    2. Quote: token_amount = token_amount_from_usd(asset, debt_to_cover)
              bonus = token_amount * LIQUIDATION_BONUS // LIQUIDATION_PRECISION
    3. Move token_amount + bonus of the target's collateral to the liquidator
    4. Burn debt_to_cover of the target's debt, paid by the liquidator
    5. Reject if the target's health factor is still at or below the minimum
    6. Require the liquidator's own position to stay healthy

Partial liquidation is allowed. Covering more debt than the target has, or
seizing more collateral than the target deposited, fails in steps 3-4.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from .core import (
    EngineParameters, DEFAULT_PARAMETERS, EventSink, Liquidated,
    HealthFactorOkay, HealthFactorNotImproved,
)

if TYPE_CHECKING:
    from .collateral import CollateralLedger
    from .debt import DebtGateway
    from .health import HealthFactorCalculator
    from .oracle import PriceOracle


@dataclass(frozen=True, slots=True)
class LiquidationQuote:
    """
    Collateral a liquidator receives for covering debt_to_cover.

    Attributes:
        asset: Collateral asset seized
        debt_to_cover: Debt repaid, 18-decimal USD
        token_amount: Collateral equivalent of debt_to_cover at the current price
        bonus: Incentive on top of token_amount
        total_collateral: token_amount + bonus
    """
    asset: str
    debt_to_cover: int
    token_amount: int
    bonus: int
    total_collateral: int


def calculate_liquidation_bonus(
    token_amount: int,
    parameters: EngineParameters = DEFAULT_PARAMETERS,
) -> int:
    return token_amount * parameters.liquidation_bonus // parameters.liquidation_precision


def quote_liquidation(
    oracle: 'PriceOracle',
    asset: str,
    debt_to_cover: int,
    parameters: EngineParameters = DEFAULT_PARAMETERS,
) -> LiquidationQuote:
    """
    Price a liquidation without touching any balance.

    Example:
        # Collateral at $800, covering $1000 of debt
        quote = quote_liquidation(oracle, "WETH", to_wei(1000))
        quote.token_amount      # 1.25e18
        quote.bonus             # 0.125e18
        quote.total_collateral  # 1.375e18
    """
    token_amount = oracle.token_amount_from_usd(asset, debt_to_cover)
    bonus = calculate_liquidation_bonus(token_amount, parameters)
    return LiquidationQuote(
        asset=asset,
        debt_to_cover=debt_to_cover,
        token_amount=token_amount,
        bonus=bonus,
        total_collateral=token_amount + bonus,
    )


class LiquidationEngine:
    """Runs the liquidation protocol against the ledger and debt gateway."""

    def __init__(
        self,
        collateral: 'CollateralLedger',
        debts: 'DebtGateway',
        health: 'HealthFactorCalculator',
        oracle: 'PriceOracle',
        parameters: EngineParameters = DEFAULT_PARAMETERS,
        emit: Optional[EventSink] = None,
    ):
        self.collateral = collateral
        self.debts = debts
        self.health = health
        self.oracle = oracle
        self.parameters = parameters
        self._emit = emit or (lambda event: None)

    def liquidate(self, asset: str, target: str, liquidator: str, debt_to_cover: int) -> Liquidated:
        """
        Liquidate debt_to_cover of target's debt against asset.

        Returns:
            The Liquidated record (also emitted)

        Raises:
            HealthFactorOkay: If target is not below the minimum
            InsufficientCollateral: If target lacks the quoted collateral
            InsufficientDebt: If debt_to_cover exceeds target's debt
            TransferFailed: If a token movement is refused
            HealthFactorNotImproved: If target is still at or below the minimum
            BreaksHealthFactor: If the liquidator ends up unhealthy
        """
        start_health_factor = self.health.health_factor(target)
        if start_health_factor >= self.parameters.min_health_factor:
            raise HealthFactorOkay(start_health_factor)

        quote = quote_liquidation(self.oracle, asset, debt_to_cover, self.parameters)
        self.collateral.withdraw(asset, quote.total_collateral, target, liquidator)
        self.debts.burn(debt_to_cover, on_behalf_of=target, payer=liquidator)

        end_health_factor = self.health.health_factor(target)
        if end_health_factor <= self.parameters.min_health_factor:
            raise HealthFactorNotImproved(end_health_factor)

        self.health.assert_healthy(liquidator)

        record = Liquidated(
            target=target,
            liquidator=liquidator,
            asset=asset,
            debt_covered=debt_to_cover,
            collateral_seized=quote.total_collateral,
            bonus=quote.bonus,
            start_health_factor=start_health_factor,
            end_health_factor=end_health_factor,
        )
        self._emit(record)
        return record
