"""Request-scoped dependencies — who is calling.

Signed-in callers send ``Authorization: Bearer <token>``, which the Auth
Service resolves. Guests send ``X-Session-Id``. A bearer token always
wins over a session id.
"""

from fastapi import Depends, Header, HTTPException

from ordering.auth import get_auth_service
from ordering.auth.port import Principal, Role
from ordering.cart.cart import CartActor
from ordering.utils.logging import bind_request_context


def _bearer_token(authorization: str) -> str | None:
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def optional_principal(authorization: str = Header(default="")) -> Principal | None:
    if not authorization:
        return None
    token = _bearer_token(authorization)
    principal = get_auth_service().authenticate(token) if token else None
    if principal is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    bind_request_context(user_id=principal.user_id, role=principal.role.value)
    return principal


def require_principal(principal: Principal | None = Depends(optional_principal)) -> Principal:
    if principal is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return principal


def require_role(*roles: Role):
    """Dependency factory admitting only principals holding one of ``roles``."""

    def _check(principal: Principal = Depends(require_principal)) -> Principal:
        if principal.role not in roles:
            raise HTTPException(status_code=403, detail="Not allowed for this role")
        return principal

    return _check


def resolve_actor(
    principal: Principal | None = Depends(optional_principal),
    x_session_id: str = Header(default=""),
) -> CartActor:
    """The cart owner for this request: the signed-in user, else the guest session."""
    if principal is not None:
        return CartActor.user(principal.user_id)
    if x_session_id.strip():
        bind_request_context(session_id=x_session_id.strip())
        return CartActor.guest(x_session_id.strip())
    raise HTTPException(status_code=401, detail="Sign in or provide an X-Session-Id header")
