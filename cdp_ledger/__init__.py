"""
cdp_ledger - Collateralized-Debt Accounting Engine

Users deposit approved collateral, mint a stable unit against it, and the
engine keeps every account over-collateralized. Unsafe accounts can be
liquidated by anyone holding the stable unit.

Usage:
    from cdp_ledger import CollateralEngine, Token, StableToken, StaticPriceFeed, to_wei

    weth = Token("WETH", "Wrapped Ether")
    dsc = StableToken(owner="engine")
    engine = CollateralEngine([weth], [StaticPriceFeed(2000 * 10**8)], dsc, name="engine")

    # Fund and approve
    weth.mint("alice", to_wei(10))
    weth.approve("alice", "engine", to_wei(10))

    # Deposit 10 WETH ($20,000) and mint $5,000 of debt
    engine.deposit_collateral_and_mint_debt("alice", "WETH", to_wei(10), to_wei(5000))
    engine.health_factor("alice")  # 2e18
"""

# Core types
from .core import (
    # Constants
    PRECISION,
    FEED_DECIMALS,
    ADDITIONAL_FEED_PRECISION,
    LIQUIDATION_THRESHOLD,
    LIQUIDATION_PRECISION,
    LIQUIDATION_BONUS,
    MIN_HEALTH_FACTOR,
    MAX_HEALTH_FACTOR,
    DEFAULT_PRICE_TIMEOUT,
    # Protocols
    CollateralToken,
    DebtToken,
    PriceFeed,
    Snapshottable,
    # Data structures
    PriceReading,
    AccountInfo,
    EngineParameters,
    DEFAULT_PARAMETERS,
    # Events
    CollateralDeposited,
    CollateralRedeemed,
    DebtMinted,
    DebtBurned,
    Liquidated,
    # Exceptions
    EngineError,
    ValidationError,
    NeedsMoreThanZero,
    TokenNotAllowed,
    ConfigurationMismatch,
    TransferError,
    TransferFailed,
    BurnFailed,
    MintError,
    MintFailed,
    HealthFactorViolation,
    BreaksHealthFactor,
    LiquidationPrecondition,
    HealthFactorOkay,
    LiquidationIneffective,
    HealthFactorNotImproved,
    InsufficientBalance,
    InsufficientCollateral,
    InsufficientDebt,
    OracleError,
    PriceFeedUnavailable,
    InvalidPrice,
    StalePrice,
    ReentrantCall,
    RollbackIncomplete,
    # Helpers
    to_wei,
    from_wei,
)

# Components
from .collateral import CollateralLedger
from .oracle import PriceOracle, normalize_price, check_staleness
from .health import (
    HealthFactorCalculator,
    calculate_collateral_value,
    calculate_adjusted_collateral,
    calculate_health_factor,
    calculate_max_mintable,
    is_healthy,
)
from .debt import DebtGateway
from .liquidation import (
    LiquidationEngine,
    LiquidationQuote,
    calculate_liquidation_bonus,
    quote_liquidation,
)

# Engine
from .engine import CollateralEngine

# Reference collaborators
from .tokens import Token, StableToken, TokenError
from .pricing_source import StaticPriceFeed, TimeSeriesPriceFeed

__all__ = [
    # Constants
    'PRECISION', 'FEED_DECIMALS', 'ADDITIONAL_FEED_PRECISION',
    'LIQUIDATION_THRESHOLD', 'LIQUIDATION_PRECISION', 'LIQUIDATION_BONUS',
    'MIN_HEALTH_FACTOR', 'MAX_HEALTH_FACTOR', 'DEFAULT_PRICE_TIMEOUT',
    # Protocols
    'CollateralToken', 'DebtToken', 'PriceFeed', 'Snapshottable',
    # Data structures
    'PriceReading', 'AccountInfo', 'EngineParameters', 'DEFAULT_PARAMETERS',
    # Events
    'CollateralDeposited', 'CollateralRedeemed', 'DebtMinted', 'DebtBurned', 'Liquidated',
    # Exceptions
    'EngineError', 'ValidationError', 'NeedsMoreThanZero', 'TokenNotAllowed',
    'ConfigurationMismatch', 'TransferError', 'TransferFailed', 'BurnFailed', 'MintError', 'MintFailed',
    'HealthFactorViolation', 'BreaksHealthFactor', 'LiquidationPrecondition',
    'HealthFactorOkay', 'LiquidationIneffective', 'HealthFactorNotImproved',
    'InsufficientBalance', 'InsufficientCollateral', 'InsufficientDebt',
    'OracleError', 'PriceFeedUnavailable', 'InvalidPrice', 'StalePrice', 'ReentrantCall',
    'RollbackIncomplete',
    # Helpers
    'to_wei', 'from_wei',
    # Components
    'CollateralLedger', 'PriceOracle', 'normalize_price', 'check_staleness',
    'HealthFactorCalculator', 'calculate_collateral_value', 'calculate_adjusted_collateral',
    'calculate_health_factor', 'calculate_max_mintable', 'is_healthy',
    'DebtGateway',
    'LiquidationEngine', 'LiquidationQuote', 'calculate_liquidation_bonus', 'quote_liquidation',
    # Engine
    'CollateralEngine',
    # Reference collaborators
    'Token', 'StableToken', 'TokenError',
    'StaticPriceFeed', 'TimeSeriesPriceFeed',
]

__version__ = '1.0.0'
