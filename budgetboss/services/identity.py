"""
Identity Provider

Authentication is an external collaborator. All BudgetBoss needs from it
is an opaque owner id while signed in, and None while offline or signed
out - in which case the local placeholder owner is used and no sync runs.
"""

from abc import ABC, abstractmethod
from typing import Optional


class IdentityProvider(ABC):
    """Supplies the current owner id, if any."""

    @abstractmethod
    def get_owner_id(self) -> Optional[str]:
        pass

    @property
    def is_authenticated(self) -> bool:
        return self.get_owner_id() is not None


class StaticIdentityProvider(IdentityProvider):
    """Identity fixed at construction; `sign_in`/`sign_out` swap it."""

    def __init__(self, owner_id: Optional[str] = None):
        self._owner_id = owner_id

    def get_owner_id(self) -> Optional[str]:
        return self._owner_id

    def sign_in(self, owner_id: str) -> None:
        self._owner_id = owner_id

    def sign_out(self) -> None:
        self._owner_id = None
