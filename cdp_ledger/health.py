"""
health.py - Health factor calculation

ARCHITECTURE (Pure Function Pattern):
=====================================

1. PURE CALCULATION FUNCTIONS (calculate_*):
   - Take all inputs explicitly as parameters
   - No ledger, no hidden state
   - Example: calculate_health_factor(debt, collateral_usd, parameters) -> int

2. HealthFactorCalculator:
   - Reads balances, debt and prices once per call
   - Delegates the arithmetic to the pure functions

Key Formulas:
    collateral_value_usd = sum(usd_value(asset, balance) for each supported asset)
    adjusted_collateral = collateral_value_usd * LIQUIDATION_THRESHOLD // LIQUIDATION_PRECISION
    health_factor = adjusted_collateral * PRECISION // debt_minted
    health_factor = MAX_HEALTH_FACTOR when debt_minted == 0
"""

from __future__ import annotations
from typing import Mapping, TYPE_CHECKING

from .core import (
    AccountInfo, EngineParameters, DEFAULT_PARAMETERS,
    MAX_HEALTH_FACTOR, BreaksHealthFactor,
)

if TYPE_CHECKING:
    from .collateral import CollateralLedger
    from .debt import DebtGateway
    from .oracle import PriceOracle


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_collateral_value(balances: Mapping[str, int], oracle: 'PriceOracle') -> int:
    """
    Total USD value of a set of balances.

    Every asset in balances is priced, including zero balances, so a broken
    feed for any supported asset fails the valuation.
    """
    total = 0
    for asset, amount in balances.items():
        total += oracle.usd_value(asset, amount)
    return total


def calculate_adjusted_collateral(
    collateral_value_usd: int,
    parameters: EngineParameters = DEFAULT_PARAMETERS,
) -> int:
    """Collateral value counted toward borrowing capacity."""
    return (
        collateral_value_usd * parameters.liquidation_threshold
        // parameters.liquidation_precision
    )


def calculate_health_factor(
    debt_minted: int,
    collateral_value_usd: int,
    parameters: EngineParameters = DEFAULT_PARAMETERS,
) -> int:
    """
    Health factor in engine precision.

    Returns MAX_HEALTH_FACTOR when there is no debt: an account without debt
    can never violate the minimum.

    Example:
        calculate_health_factor(100 * 10**18, 20_000 * 10**18) == 100 * 10**18
    """
    if debt_minted == 0:
        return MAX_HEALTH_FACTOR
    adjusted = calculate_adjusted_collateral(collateral_value_usd, parameters)
    return adjusted * parameters.precision // debt_minted


def calculate_max_mintable(
    collateral_value_usd: int,
    debt_minted: int,
    parameters: EngineParameters = DEFAULT_PARAMETERS,
) -> int:
    """
    Largest additional debt that keeps the health factor at or above the minimum.

    With 20000e18 USD of collateral, a 50% threshold and no debt this is 10000e18.
    """
    adjusted = calculate_adjusted_collateral(collateral_value_usd, parameters)
    max_debt = adjusted * parameters.precision // parameters.min_health_factor
    return max(0, max_debt - debt_minted)


def is_healthy(health_factor: int, parameters: EngineParameters = DEFAULT_PARAMETERS) -> bool:
    return health_factor >= parameters.min_health_factor


# ============================================================================
# CALCULATOR
# ============================================================================

class HealthFactorCalculator:
    """Health factor of live accounts, read from the ledger, debt table and oracle."""

    def __init__(
        self,
        collateral: 'CollateralLedger',
        debts: 'DebtGateway',
        oracle: 'PriceOracle',
        parameters: EngineParameters = DEFAULT_PARAMETERS,
    ):
        self.collateral = collateral
        self.debts = debts
        self.oracle = oracle
        self.parameters = parameters

    def collateral_value(self, user: str) -> int:
        return calculate_collateral_value(self.collateral.balances_of(user), self.oracle)

    def account_info(self, user: str) -> AccountInfo:
        """Debt and collateral value of user. No side effects."""
        return AccountInfo(
            debt_minted=self.debts.debt_of(user),
            collateral_value_usd=self.collateral_value(user),
        )

    def health_factor(self, user: str) -> int:
        info = self.account_info(user)
        return calculate_health_factor(info.debt_minted, info.collateral_value_usd, self.parameters)

    def max_mintable(self, user: str) -> int:
        info = self.account_info(user)
        return calculate_max_mintable(info.collateral_value_usd, info.debt_minted, self.parameters)

    def assert_healthy(self, user: str) -> None:
        """
        Raises:
            BreaksHealthFactor: If the health factor of user is below the minimum
        """
        ratio = self.health_factor(user)
        if not is_healthy(ratio, self.parameters):
            raise BreaksHealthFactor(ratio, user)
