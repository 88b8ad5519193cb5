"""Request dependencies shared by route handlers."""

from fastapi import Header, HTTPException, status

USER_HEADER = "X-User-Id"


async def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity, as set by the upstream auth proxy."""
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {USER_HEADER} header",
        )
    return x_user_id.strip()
