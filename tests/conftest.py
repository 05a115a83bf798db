"""
conftest.py - Shared pytest fixtures for engine tests

Provides common fixtures used across unit, conformance and functional tests:
- Collateral tokens and price feeds (WETH at $2000, WBTC at $1000)
- A fresh engine with funded, approved users
- Engines with deposited and minted positions
- State capture helpers for atomicity assertions
- make_market() for tests that build engines outside fixtures
"""

import pytest
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict

from cdp_ledger import (
    CollateralEngine, Token, StableToken, StaticPriceFeed,
    EngineParameters, DEFAULT_PARAMETERS, to_wei,
)


ENGINE = "engine"
USER = "alice"
LIQUIDATOR = "liquidator"

ETH_USD_PRICE = 2000 * 10 ** 8
BTC_USD_PRICE = 1000 * 10 ** 8

COLLATERAL_AMOUNT = to_wei(10)
AMOUNT_TO_MINT = to_wei(100)
STARTING_BALANCE = to_wei(1000)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def fund(token: Token, user: str, amount: int = STARTING_BALANCE, spender: str = ENGINE) -> None:
    """Mint amount to user and approve the engine for all of it."""
    token.mint(user, amount)
    token.approve(user, spender, token.allowance(user, spender) + amount)


def capture_state(engine: CollateralEngine, users=(USER, LIQUIDATOR)) -> Dict[str, Any]:
    """Every balance, debt, token balance and the event count, for before/after comparison."""
    state: Dict[str, Any] = {'events': len(engine.events)}
    for user in users:
        for asset in engine.supported_assets():
            state[(user, asset, 'deposited')] = engine.collateral_balance(user, asset)
            state[(user, asset, 'wallet')] = engine.collateral_token(asset).balance_of(user)
        state[(user, 'debt')] = engine.debt_minted(user)
        state[(user, 'dsc')] = engine.debt_token.balance_of(user)
    for asset in engine.supported_assets():
        state[(ENGINE, asset)] = engine.collateral_token(asset).balance_of(ENGINE)
    state['dsc_supply'] = engine.debt_token.total_supply
    return state


@dataclass
class Market:
    """An engine together with the collaborators it was built from."""
    engine: CollateralEngine
    weth: Token
    wbtc: Token
    eth_usd: StaticPriceFeed
    btc_usd: StaticPriceFeed
    dsc: StableToken


def make_market(parameters: EngineParameters = DEFAULT_PARAMETERS, users=(USER, LIQUIDATOR)) -> Market:
    """
    Fresh engine outside of fixtures, for property-based tests that need
    a clean instance per example.
    """
    weth, wbtc = Token("WETH", "Wrapped Ether"), Token("WBTC", "Wrapped Bitcoin")
    eth_usd, btc_usd = StaticPriceFeed(ETH_USD_PRICE), StaticPriceFeed(BTC_USD_PRICE)
    dsc = StableToken(owner=ENGINE)
    engine = CollateralEngine(
        [weth, wbtc], [eth_usd, btc_usd], dsc,
        name=ENGINE, parameters=parameters, initial_time=datetime(2025, 1, 1), verbose=False,
    )
    for user in users:
        fund(weth, user)
        fund(wbtc, user)
        dsc.approve(user, ENGINE, STARTING_BALANCE * 10 ** 6)
    return Market(engine, weth, wbtc, eth_usd, btc_usd, dsc)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def weth():
    return Token("WETH", "Wrapped Ether")


@pytest.fixture
def wbtc():
    return Token("WBTC", "Wrapped Bitcoin")


@pytest.fixture
def eth_usd():
    return StaticPriceFeed(ETH_USD_PRICE)


@pytest.fixture
def btc_usd():
    return StaticPriceFeed(BTC_USD_PRICE)


@pytest.fixture
def dsc():
    return StableToken(owner=ENGINE)


@pytest.fixture
def engine(weth, wbtc, eth_usd, btc_usd, dsc):
    """Engine with WETH and WBTC collateral; USER and LIQUIDATOR funded and approved."""
    eng = CollateralEngine(
        [weth, wbtc], [eth_usd, btc_usd], dsc,
        name=ENGINE, initial_time=datetime(2025, 1, 1), verbose=False,
    )
    for user in (USER, LIQUIDATOR):
        fund(weth, user)
        fund(wbtc, user)
    return eng


@pytest.fixture
def deposited(engine):
    """USER has deposited COLLATERAL_AMOUNT of WETH ($20,000)."""
    engine.deposit_collateral(USER, "WETH", COLLATERAL_AMOUNT)
    return engine


@pytest.fixture
def minted(deposited, dsc):
    """USER has deposited 10 WETH and minted 100 DSC, and approved the engine to pull it back."""
    deposited.mint_debt(USER, AMOUNT_TO_MINT)
    dsc.approve(USER, ENGINE, AMOUNT_TO_MINT)
    return deposited
