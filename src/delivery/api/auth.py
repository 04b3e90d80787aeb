"""Caller identity, as asserted by the upstream auth gateway."""

from dataclasses import dataclass

from fastapi import Header, HTTPException


@dataclass(frozen=True)
class Caller:
    user_id: str
    role: str | None = None


def current_caller(
    x_user_id: str = Header(default=""),
    x_user_role: str = Header(default=""),
) -> Caller:
    """Resolve the verified caller or reject the request with 401."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return Caller(user_id=x_user_id, role=x_user_role or None)
