"""In-memory auth service for development and testing."""

from uuid import uuid4

from ordering.auth.port import AuthService, Principal, Role


class FakeAuthService(AuthService):
    def __init__(self) -> None:
        self.tokens: dict[str, Principal] = {}

    def issue(self, user_id: str, role: Role = Role.CUSTOMER) -> str:
        token = f"tok_{uuid4().hex}"
        self.tokens[token] = Principal(user_id=user_id, role=role)
        return token

    def revoke(self, token: str) -> None:
        self.tokens.pop(token, None)

    def authenticate(self, token: str) -> Principal | None:
        return self.tokens.get(token)
