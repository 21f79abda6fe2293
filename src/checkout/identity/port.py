"""Identity collaborator port."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    user_id: str
    name: str
    email: str


class IdentityService(ABC):
    @abstractmethod
    def get_identity(self) -> Identity | None:
        """Return the signed-in user, or ``None`` for anonymous sessions."""
        ...


class StaticIdentityService(IdentityService):
    """Identity fixed at construction, switchable with ``sign_in``/``sign_out``."""

    def __init__(self, identity: Identity | None = None) -> None:
        self._identity = identity

    def get_identity(self) -> Identity | None:
        return self._identity

    def sign_in(self, identity: Identity) -> None:
        self._identity = identity

    def sign_out(self) -> None:
        self._identity = None
