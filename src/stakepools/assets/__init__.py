"""
stakepools.assets - External asset collaborators.

Abstract token interfaces the engine transfers through, plus in-memory
implementations.
"""

from .base import FungibleAsset, NonFungibleAsset
from .memory import InMemoryToken, InMemoryNFT

__all__ = [
    "FungibleAsset",
    "NonFungibleAsset",
    "InMemoryToken",
    "InMemoryNFT",
]
