"""Auth Service port — resolves bearer tokens issued by the external auth service."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class Role(Enum):
    CUSTOMER = "customer"
    DRIVER = "driver"
    STORE_OWNER = "store_owner"
    ADMIN = "admin"


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: Role


class AuthService(ABC):
    @abstractmethod
    def authenticate(self, token: str) -> Principal | None:
        """Return the principal for a valid token, or None if it is invalid or expired."""
        ...
