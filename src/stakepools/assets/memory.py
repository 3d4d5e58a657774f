"""
stakepools/assets/memory.py

In-process asset collaborators for tests, demos and the service runner.
"""

import logging
from collections import defaultdict
from typing import Callable, Dict, Optional, Set, Tuple

from .base import FungibleAsset, NonFungibleAsset

logger = logging.getLogger("stakepools.assets.memory")


class InMemoryToken(FungibleAsset):
    """
    Dictionary-backed fungible token with allowances.

    An optional ``on_transfer`` hook runs before balances move. It receives
    (sender, recipient, amount) and exists to simulate a collaborator that
    calls back into the engine.
    """

    def __init__(self, symbol: str, on_transfer: Optional[Callable[[str, str, int], None]] = None):
        self.symbol = symbol
        self.on_transfer = on_transfer
        self._balances: Dict[str, int] = defaultdict(int)
        self._allowances: Dict[Tuple[str, str], int] = defaultdict(int)
        self.total_supply = 0

    def mint(self, account: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("Cannot mint a negative amount")
        self._balances[account] += amount
        self.total_supply += amount

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        if amount < 0:
            return False
        self._allowances[(owner, spender)] = amount
        return True

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        return self._move(sender, recipient, amount)

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> bool:
        allowed = self.allowance(owner, spender)
        if spender != owner and allowed < amount:
            logger.debug(f"{self.symbol}: allowance {allowed} < {amount} for {spender}")
            return False
        if not self._move(owner, recipient, amount):
            return False
        if spender != owner:
            self._allowances[(owner, spender)] = allowed - amount
        return True

    def _move(self, sender: str, recipient: str, amount: int) -> bool:
        if amount < 0 or self.balance_of(sender) < amount:
            logger.debug(f"{self.symbol}: {sender} cannot send {amount}")
            return False
        if self.on_transfer is not None:
            self.on_transfer(sender, recipient, amount)
        self._balances[sender] -= amount
        self._balances[recipient] += amount
        return True


class InMemoryNFT(NonFungibleAsset):
    """Dictionary-backed non-fungible token keyed by integer token id."""

    def __init__(self, symbol: str = "BOOST"):
        self.symbol = symbol
        self._owners: Dict[int, str] = {}
        self._holdings: Dict[str, Set[int]] = defaultdict(set)
        self._next_id = 1

    def mint(self, account: str) -> int:
        token_id = self._next_id
        self._next_id += 1
        self._owners[token_id] = account
        self._holdings[account].add(token_id)
        return token_id

    def burn(self, token_id: int) -> None:
        owner = self._owners.pop(token_id)
        self._holdings[owner].discard(token_id)

    def transfer(self, sender: str, recipient: str, token_id: int) -> bool:
        if self._owners.get(token_id) != sender:
            return False
        self._holdings[sender].discard(token_id)
        self._holdings[recipient].add(token_id)
        self._owners[token_id] = recipient
        return True

    def owner_of(self, token_id: int) -> Optional[str]:
        return self._owners.get(token_id)

    def balance_of(self, account: str) -> int:
        return len(self._holdings.get(account, ()))
