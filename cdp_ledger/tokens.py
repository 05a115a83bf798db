"""
tokens.py - In-memory token primitives

Reference implementations of the external token collaborators:
- Token: plain fungible token with balances and allowances (collateral)
- StableToken: the debt unit; only its owner's balance can be burned

Both support snapshot()/restore() so the engine can roll their state back
together with its own when an operation fails.

Failures raise TokenError. Since there is no implicit caller, every call
names its sender explicitly.
"""

from __future__ import annotations
from collections import defaultdict
from typing import Dict, Optional, Tuple


class TokenError(Exception):
    """Raised when a token operation is refused."""
    pass


TokenSnapshot = Tuple[Dict[str, int], Dict[str, Dict[str, int]], int]


class Token:
    """
    Fungible token with balances and allowances.

    Example:
        weth = Token("WETH", "Wrapped Ether")
        weth.mint("alice", to_wei(10))
        weth.approve("alice", "engine", to_wei(10))
        weth.transfer_from("alice", "engine", to_wei(10))
    """

    def __init__(self, symbol: str, name: str = "", decimals: int = 18):
        self.symbol = symbol
        self.name = name or symbol
        self.decimals = decimals
        self.balances: Dict[str, int] = defaultdict(int)
        self.allowances: Dict[str, Dict[str, int]] = defaultdict(dict)
        self.total_supply = 0

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get(owner, {}).get(spender, 0)

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        if amount < 0:
            raise TokenError(f"{self.symbol}: negative approval {amount}")
        self.allowances[owner][spender] = amount
        return True

    def mint(self, to: str, amount: int) -> bool:
        """Create amount new tokens for to."""
        if not to:
            raise TokenError(f"{self.symbol}: cannot mint to empty account")
        if amount <= 0:
            raise TokenError(f"{self.symbol}: mint amount must be positive, got {amount}")
        self.balances[to] += amount
        self.total_supply += amount
        return True

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        self._move(sender, recipient, amount)
        return True

    def transfer_from(
        self,
        sender: str,
        recipient: str,
        amount: int,
        spender: Optional[str] = None,
    ) -> bool:
        """
        Move tokens out of sender using an allowance.

        The spender defaults to the recipient, which is the case when the
        engine pulls tokens into its own custody.
        """
        spender = spender or recipient
        allowed = self.allowance(sender, spender)
        if amount > allowed:
            raise TokenError(
                f"{self.symbol}: allowance {allowed} of {spender} over {sender} below {amount}"
            )
        self._move(sender, recipient, amount)
        self.allowances[sender][spender] = allowed - amount
        return True

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise TokenError(f"{self.symbol}: negative transfer {amount}")
        if not recipient:
            raise TokenError(f"{self.symbol}: cannot transfer to empty account")
        available = self.balance_of(sender)
        if amount > available:
            raise TokenError(f"{self.symbol}: {sender} holds {available}, cannot send {amount}")
        self.balances[sender] = available - amount
        self.balances[recipient] += amount

    def snapshot(self) -> TokenSnapshot:
        allowances = {owner: dict(spenders) for owner, spenders in self.allowances.items()}
        return dict(self.balances), allowances, self.total_supply

    def restore(self, state: TokenSnapshot) -> None:
        balances, allowances, total_supply = state
        self.balances = defaultdict(int, balances)
        self.allowances = defaultdict(dict, {o: dict(s) for o, s in allowances.items()})
        self.total_supply = total_supply

    def __repr__(self):
        return f"Token({self.symbol}, supply={self.total_supply})"


class StableToken(Token):
    """
    Debt unit minted against collateral.

    Burning destroys tokens from the owner's own balance only, so the
    engine (constructed as the owner) must pull tokens into its custody
    before burning them. Minting is not access-controlled here; the engine
    is the only caller in this package.
    """

    def __init__(self, owner: str, symbol: str = "DSC", name: str = "Decentralized Stable Coin"):
        super().__init__(symbol, name, decimals=18)
        self.owner = owner

    def burn(self, holder: str, amount: int) -> None:
        """Destroy amount tokens held by the owner."""
        if holder != self.owner:
            raise TokenError(f"{self.symbol}: only {self.owner} can burn")
        if amount <= 0:
            raise TokenError(f"{self.symbol}: burn amount must be positive, got {amount}")
        available = self.balance_of(holder)
        if amount > available:
            raise TokenError(f"{self.symbol}: burn amount {amount} exceeds balance {available}")
        self.balances[holder] = available - amount
        self.total_supply -= amount

    def __repr__(self):
        return f"StableToken({self.symbol}, owner={self.owner}, supply={self.total_supply})"
