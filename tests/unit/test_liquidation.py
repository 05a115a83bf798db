"""
test_liquidation.py - Unit tests for liquidation

Tests:
- Bonus and quote arithmetic
- Refusal when the target is healthy
- Full and partial liquidation outcomes
- Rollback on every failing step
"""

import pytest

from cdp_ledger import (
    PriceOracle, StaticPriceFeed, EngineParameters, Liquidated,
    calculate_liquidation_bonus, quote_liquidation, to_wei,
    HealthFactorOkay, HealthFactorNotImproved, BreaksHealthFactor,
    InsufficientCollateral, InsufficientDebt, TransferFailed,
    NeedsMoreThanZero, TokenNotAllowed, MAX_HEALTH_FACTOR,
)
from tests.conftest import USER, LIQUIDATOR, ENGINE, capture_state


CRASHED_ETH_PRICE = 800 * 10 ** 8


@pytest.fixture
def underwater(engine, eth_usd, dsc):
    """
    USER: 2 WETH, 1000 DSC debt; after the crash to $800 health factor is 0.8.
    LIQUIDATOR: 20 WETH, 1000 DSC minted and approved to the engine.
    """
    engine.deposit_collateral_and_mint_debt(USER, "WETH", to_wei(2), to_wei(1000))
    engine.deposit_collateral_and_mint_debt(LIQUIDATOR, "WETH", to_wei(20), to_wei(1000))
    dsc.approve(LIQUIDATOR, ENGINE, to_wei(1000))
    eth_usd.update_answer(CRASHED_ETH_PRICE)
    return engine


class TestQuote:

    def test_bonus_is_ten_percent(self):
        assert calculate_liquidation_bonus(to_wei("1.25")) == to_wei("0.125")

    def test_bonus_truncates(self):
        assert calculate_liquidation_bonus(9) == 0
        assert calculate_liquidation_bonus(19) == 1

    def test_custom_bonus(self):
        assert calculate_liquidation_bonus(1000, EngineParameters(liquidation_bonus=5)) == 50

    def test_quote(self):
        oracle = PriceOracle({"WETH": StaticPriceFeed(CRASHED_ETH_PRICE)})
        quote = quote_liquidation(oracle, "WETH", to_wei(1000))

        assert quote.token_amount == to_wei("1.25")
        assert quote.bonus == to_wei("0.125")
        assert quote.total_collateral == to_wei("1.375")

    def test_engine_quote_rejects_unknown_asset(self, engine):
        with pytest.raises(TokenNotAllowed):
            engine.quote_liquidation("DOGE", to_wei(1))


class TestPreconditions:

    def test_cannot_liquidate_healthy_user(self, minted, dsc):
        dsc.mint(LIQUIDATOR, to_wei(10))
        dsc.approve(LIQUIDATOR, ENGINE, to_wei(10))

        with pytest.raises(HealthFactorOkay) as exc_info:
            minted.liquidate(LIQUIDATOR, "WETH", USER, to_wei(10))
        assert exc_info.value.health_factor == to_wei(100)

    def test_cannot_liquidate_user_without_debt(self, deposited):
        with pytest.raises(HealthFactorOkay):
            deposited.liquidate(LIQUIDATOR, "WETH", USER, to_wei(1))

    def test_exactly_at_minimum_is_not_liquidatable(self, engine, eth_usd, dsc):
        engine.deposit_collateral_and_mint_debt(USER, "WETH", to_wei(10), to_wei(10_000))
        assert engine.health_factor(USER) == engine.min_health_factor()

        with pytest.raises(HealthFactorOkay):
            engine.liquidate(LIQUIDATOR, "WETH", USER, to_wei(1))

    def test_zero_debt_to_cover(self, underwater):
        with pytest.raises(NeedsMoreThanZero) as exc_info:
            underwater.liquidate(LIQUIDATOR, "WETH", USER, 0)
        assert exc_info.value.argument == "debt_to_cover"

    def test_unsupported_asset(self, underwater):
        with pytest.raises(TokenNotAllowed):
            underwater.liquidate(LIQUIDATOR, "DOGE", USER, to_wei(1))


class TestLiquidate:

    def test_full_liquidation(self, underwater, weth, dsc):
        assert underwater.health_factor(USER) == to_wei("0.8")

        record = underwater.liquidate(LIQUIDATOR, "WETH", USER, to_wei(1000))

        assert isinstance(record, Liquidated)
        assert record.collateral_seized == to_wei("1.375")
        assert record.bonus == to_wei("0.125")
        assert record.start_health_factor == to_wei("0.8")
        assert record.end_health_factor == MAX_HEALTH_FACTOR

        assert underwater.collateral_balance(USER, "WETH") == to_wei("0.625")
        assert underwater.debt_minted(USER) == 0
        assert underwater.health_factor(USER) == MAX_HEALTH_FACTOR
        assert weth.balance_of(LIQUIDATOR) == to_wei(1000) - to_wei(20) + to_wei("1.375")
        assert dsc.balance_of(LIQUIDATOR) == 0
        assert dsc.total_supply == to_wei(1000)
        assert underwater.events[-1] == record

    def test_liquidator_debt_is_unchanged(self, underwater):
        underwater.liquidate(LIQUIDATOR, "WETH", USER, to_wei(1000))
        assert underwater.debt_minted(LIQUIDATOR) == to_wei(1000)
        assert underwater.collateral_balance(LIQUIDATOR, "WETH") == to_wei(20)

    def test_partial_liquidation(self, underwater):
        # 600 covered at $800: 0.75 + 0.075 seized, 1.175 WETH ($940) left against 400 debt
        record = underwater.liquidate(LIQUIDATOR, "WETH", USER, to_wei(600))

        assert record.collateral_seized == to_wei("0.825")
        assert underwater.debt_minted(USER) == to_wei(400)
        assert underwater.collateral_balance(USER, "WETH") == to_wei("1.175")
        assert underwater.health_factor(USER) == to_wei("1.175")

    def test_insufficient_improvement_rolls_back(self, underwater):
        # 100 covered leaves 900 debt against 1.8625 WETH ($1490): ratio ~0.83
        before = capture_state(underwater)
        with pytest.raises(HealthFactorNotImproved) as exc_info:
            underwater.liquidate(LIQUIDATOR, "WETH", USER, to_wei(100))
        assert exc_info.value.health_factor < underwater.min_health_factor()
        assert capture_state(underwater) == before

    def test_cover_more_than_target_debt(self, underwater, dsc):
        dsc.mint(LIQUIDATOR, to_wei(1))
        dsc.approve(LIQUIDATOR, ENGINE, to_wei(1001))
        before = capture_state(underwater)

        with pytest.raises(InsufficientDebt):
            # the seize fits in 2 WETH, so the debt table is what refuses
            underwater.liquidate(LIQUIDATOR, "WETH", USER, to_wei(1001))
        assert capture_state(underwater) == before

    def test_cover_without_approval(self, underwater, dsc):
        dsc.approve(LIQUIDATOR, ENGINE, 0)
        before = capture_state(underwater)
        with pytest.raises(TransferFailed):
            underwater.liquidate(LIQUIDATOR, "WETH", USER, to_wei(1000))
        assert capture_state(underwater) == before

    def test_seizing_more_than_deposited(self, underwater):
        before = capture_state(underwater)
        with pytest.raises(InsufficientCollateral):
            underwater.liquidate(LIQUIDATOR, "WETH", USER, to_wei(1500))
        assert capture_state(underwater) == before

    def test_liquidator_must_stay_healthy(self, engine, eth_usd, dsc):
        engine.deposit_collateral_and_mint_debt(USER, "WETH", to_wei(2), to_wei(1000))
        engine.deposit_collateral_and_mint_debt(LIQUIDATOR, "WETH", to_wei(1), to_wei(1000))
        dsc.approve(LIQUIDATOR, ENGINE, to_wei(1000))
        eth_usd.update_answer(CRASHED_ETH_PRICE)
        before = capture_state(engine)

        with pytest.raises(BreaksHealthFactor) as exc_info:
            engine.liquidate(LIQUIDATOR, "WETH", USER, to_wei(1000))
        assert exc_info.value.user == LIQUIDATOR
        assert exc_info.value.health_factor == to_wei("0.4")
        assert capture_state(engine) == before


class TestDebtUnderflow:

    def test_covering_more_debt_than_recorded(self, engine, eth_usd, dsc):
        # Enough collateral that the seize succeeds, so the debt table is what refuses
        engine.deposit_collateral_and_mint_debt(USER, "WETH", to_wei(10), to_wei(1000))
        engine.deposit_collateral_and_mint_debt(LIQUIDATOR, "WETH", to_wei(20), to_wei(2000))
        dsc.approve(LIQUIDATOR, ENGINE, to_wei(2000))
        eth_usd.update_answer(150 * 10 ** 8)
        before = capture_state(engine)

        with pytest.raises(InsufficientDebt) as exc_info:
            engine.liquidate(LIQUIDATOR, "WETH", USER, to_wei(1001))
        assert exc_info.value.available == to_wei(1000)
        assert capture_state(engine) == before
