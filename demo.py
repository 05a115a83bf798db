#!/usr/bin/env python3
"""
demo.py - Walkthrough: Collateralized Debt Step by Step

Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL SEE:
  1-3:  Positions    - Deposit collateral, mint against it, read the health factor
  4-5:  Guard rails  - A rejected mint, and proof that nothing changed
  6-7:  Liquidation  - A price crash, then a liquidator restoring solvency
  8:    Close out    - Repay and withdraw everything that is left

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime
import sys

from cdp_ledger import (
    CollateralEngine, Token, StableToken, StaticPriceFeed,
    BreaksHealthFactor, HealthFactorOkay, MAX_HEALTH_FACTOR,
    to_wei, from_wei,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the walkthrough. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)

    # 8-decimal feed answers
    eth_price: int = 2000 * 10 ** 8
    crashed_eth_price: int = 800 * 10 ** 8

    alice_collateral: int = to_wei(2)
    alice_debt: int = to_wei(1000)
    liquidator_collateral: int = to_wei(20)
    liquidator_debt: int = to_wei(1000)


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def show_account(engine: CollateralEngine, user: str):
    info = engine.account_info(user)
    ratio = engine.health_factor(user)
    shown = "∞" if ratio == MAX_HEALTH_FACTOR else f"{from_wei(ratio):.4f}"
    print(f"  {user:<11} debt={from_wei(info.debt_minted):>10} "
          f"collateral=${from_wei(info.collateral_value_usd):>10}  health={shown}")


# ============================================================================
# STEPS
# ============================================================================

def step_01_setup():
    step_header(1, "An engine with one collateral asset", "Wire tokens, a feed and the engine together")

    weth = Token("WETH", "Wrapped Ether")
    dsc = StableToken(owner="engine")
    eth_usd = StaticPriceFeed(CONFIG.eth_price)
    engine = CollateralEngine([weth], [eth_usd], dsc, name="engine", initial_time=CONFIG.start_time)

    for user in ("alice", "liquidator"):
        weth.mint(user, to_wei(100))
        weth.approve(user, "engine", to_wei(100))

    print(f"  {engine}")
    print(f"  liquidation threshold: {engine.liquidation_threshold()}%")
    print(f"  liquidation bonus:     {engine.liquidation_bonus()}%")
    wait_for_enter()
    return engine, weth, dsc, eth_usd


def step_02_deposit_and_mint(engine: CollateralEngine):
    step_header(2, "Deposit and mint", "Lock collateral and mint stable units against it")

    engine.deposit_collateral_and_mint_debt(
        "alice", "WETH", CONFIG.alice_collateral, CONFIG.alice_debt
    )
    engine.deposit_collateral_and_mint_debt(
        "liquidator", "WETH", CONFIG.liquidator_collateral, CONFIG.liquidator_debt
    )
    show_account(engine, "alice")
    show_account(engine, "liquidator")
    wait_for_enter()


def step_03_headroom(engine: CollateralEngine):
    step_header(3, "Headroom", "How much more can alice mint?")
    print(f"  max mintable: {from_wei(engine.max_mintable('alice'))} DSC")
    wait_for_enter()


def step_04_rejected_mint(engine: CollateralEngine):
    step_header(4, "A rejected mint", "Minting past the threshold is refused")

    too_much = engine.max_mintable("alice") + 1
    try:
        engine.mint_debt("alice", too_much)
    except BreaksHealthFactor as exc:
        print(f"  refused, health factor would be {from_wei(exc.health_factor):.6f}")
    wait_for_enter()


def step_05_nothing_changed(engine: CollateralEngine):
    step_header(5, "Atomicity", "The refused mint left no trace")
    show_account(engine, "alice")
    print(f"  events recorded: {len(engine.events)}")
    wait_for_enter()


def step_06_crash(engine: CollateralEngine, eth_usd: StaticPriceFeed):
    step_header(6, "Price crash", "ETH falls and alice drops below the minimum")

    try:
        engine.liquidate("liquidator", "WETH", "alice", CONFIG.alice_debt)
    except HealthFactorOkay:
        print("  before the crash alice cannot be liquidated")

    eth_usd.update_answer(CONFIG.crashed_eth_price)
    show_account(engine, "alice")
    wait_for_enter()


def step_07_liquidate(engine: CollateralEngine, weth: Token, dsc: StableToken):
    step_header(7, "Liquidation", "The liquidator covers alice's debt and earns a bonus")

    quote = engine.quote_liquidation("WETH", CONFIG.alice_debt)
    print(f"  quote: {from_wei(quote.token_amount)} WETH + {from_wei(quote.bonus)} bonus")

    dsc.approve("liquidator", "engine", CONFIG.alice_debt)
    record = engine.liquidate("liquidator", "WETH", "alice", CONFIG.alice_debt)
    print(f"  seized {from_wei(record.collateral_seized)} WETH "
          f"(worth ${from_wei(engine.usd_value('WETH', record.collateral_seized))})")
    show_account(engine, "alice")
    show_account(engine, "liquidator")
    wait_for_enter()


def step_08_close_out(engine: CollateralEngine, dsc: StableToken):
    step_header(8, "Close out", "alice, now debt-free, withdraws what is left")

    remaining = engine.collateral_balance("alice", "WETH")
    engine.redeem_collateral("alice", "WETH", remaining)
    print(f"  alice withdrew {from_wei(remaining)} WETH")

    # The liquidator spent its stable units and still owes its own debt
    print(f"  liquidator DSC balance: {from_wei(dsc.balance_of('liquidator'))}")
    print(f"  summary: {engine.summary()}")
    wait_for_enter()


def main():
    engine, weth, dsc, eth_usd = step_01_setup()
    step_02_deposit_and_mint(engine)
    step_03_headroom(engine)
    step_04_rejected_mint(engine)
    step_05_nothing_changed(engine)
    step_06_crash(engine, eth_usd)
    step_07_liquidate(engine, weth, dsc)
    step_08_close_out(engine, dsc)
    print("\nDone.")


if __name__ == "__main__":
    main()
