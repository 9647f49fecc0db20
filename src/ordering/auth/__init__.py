"""Auth service adapter registry.

Uses FakeAuthService by default. Set AUTH_ADAPTER=jwt (with
AUTH_JWT_SECRET) to verify tokens from the external auth service.
"""

import os

from ordering.auth.port import AuthService

_current_auth: AuthService | None = None


def get_auth_service() -> AuthService:
    global _current_auth
    if _current_auth is None:
        adapter = os.environ.get("AUTH_ADAPTER", "fake")
        if adapter == "fake":
            from ordering.auth.fake_adapter import FakeAuthService

            _current_auth = FakeAuthService()
        elif adapter == "jwt":
            from ordering.auth.jwt_adapter import JwtAuthService

            _current_auth = JwtAuthService(
                secret=os.environ["AUTH_JWT_SECRET"],
                issuer=os.environ.get("AUTH_JWT_ISSUER"),
            )
        else:
            raise ValueError(f"Unknown auth adapter: {adapter}")
    return _current_auth


def set_auth_service(service: AuthService) -> None:
    global _current_auth
    _current_auth = service


def reset_auth_service() -> None:
    global _current_auth
    _current_auth = None
