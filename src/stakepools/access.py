"""
stakepools/access.py

Capability checks for the administrative surface.
"""

import logging
from enum import Enum

from .errors import Unauthorized

logger = logging.getLogger("stakepools.access")


class Permission(Enum):
    """Capabilities a caller may hold."""
    ADMIN = "admin"


class AccessControl:
    """
    Single-owner capability holder.

    The owner holds every permission; everyone else holds none.
    """

    def __init__(self, owner: str):
        if not owner:
            raise ValueError("Owner address required")
        self._owner = owner

    @property
    def owner(self) -> str:
        return self._owner

    def has_permission(self, caller: str, permission: Permission) -> bool:
        """Check whether ``caller`` holds ``permission``."""
        return bool(caller) and caller == self._owner

    def check(self, caller: str, permission: Permission) -> None:
        """
        Require ``caller`` to hold ``permission``.

        Raises:
            Unauthorized: If the caller lacks the permission
        """
        if not self.has_permission(caller, permission):
            logger.warning(f"Unauthorized {permission.value} call from {caller!r}")
            raise Unauthorized(f"{caller!r} lacks {permission.value} permission")

    def transfer_ownership(self, caller: str, new_owner: str) -> str:
        """
        Hand the owner capability to ``new_owner``.

        Returns:
            The previous owner
        """
        self.check(caller, Permission.ADMIN)
        if not new_owner:
            raise ValueError("New owner address required")
        previous = self._owner
        self._owner = new_owner
        logger.info(f"Ownership transferred: {previous} -> {new_owner}")
        return previous
