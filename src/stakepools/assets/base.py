"""
stakepools/assets/base.py

Interfaces for the external asset collaborators.

The engine only borrows these handles to move funds; it never owns their
state. A transfer that returns False or raises is fatal to the calling
operation.

Architecture:
    FungibleAsset (abstract)       staking, reward and governance tokens
    └── InMemoryToken              reference implementation
    NonFungibleAsset (abstract)    boost credential
    └── InMemoryNFT                reference implementation
"""

from abc import ABC, abstractmethod


class FungibleAsset(ABC):
    """Standard balance/transfer contract of a fungible token."""

    @abstractmethod
    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """Move ``amount`` from ``sender`` to ``recipient``."""
        pass

    @abstractmethod
    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> bool:
        """Move ``amount`` from ``owner`` to ``recipient`` using ``spender``'s allowance."""
        pass

    @abstractmethod
    def balance_of(self, account: str) -> int:
        pass


class NonFungibleAsset(ABC):
    """The part of a non-fungible token contract the engine needs."""

    @abstractmethod
    def balance_of(self, account: str) -> int:
        """Number of tokens held by ``account``."""
        pass
