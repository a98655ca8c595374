"""Request-scoped dependencies.

Authentication happens upstream; the gateway forwards the authenticated
principal as ``X-User-Id`` and ``X-User-Role`` headers.
"""

from dataclasses import dataclass

from fastapi import Header, HTTPException

from ordering.order.authority import Role


@dataclass(frozen=True)
class Caller:
    user_id: str
    role: str


def get_caller(
    x_user_id: str | None = Header(default=None),
    x_user_role: str = Header(default=Role.CUSTOMER.value),
) -> Caller:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        role = Role(x_user_role.lower())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown role '{x_user_role}'") from None
    return Caller(user_id=x_user_id, role=role.value)
