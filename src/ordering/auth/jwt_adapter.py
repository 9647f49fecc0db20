"""Auth service that verifies HS256 JWTs signed by the external auth service.

Claims:
- sub: user id
- role: one of customer, driver, store_owner, admin (defaults to customer)
- exp/iat: required
"""

import jwt
import structlog

from ordering.auth.port import AuthService, Principal, Role

logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "HS256"


class JwtAuthService(AuthService):
    def __init__(self, secret: str, issuer: str | None = None) -> None:
        self._secret = secret
        self._issuer = issuer

    def authenticate(self, token: str) -> Principal | None:
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError as exc:
            logger.info("Rejected bearer token", error=str(exc))
            return None

        if self._issuer is not None and claims.get("iss") != self._issuer:
            return None

        try:
            role = Role(claims.get("role", Role.CUSTOMER.value))
        except ValueError:
            return None
        return Principal(user_id=str(claims["sub"]), role=role)
