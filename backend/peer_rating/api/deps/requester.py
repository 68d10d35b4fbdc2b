from fastapi import Header, HTTPException, status


def require_requester(x_user_id: str | None = Header(None)) -> str:
    # Authentication happens upstream; the gateway forwards the user id.
    requester_id = (x_user_id or "").strip()
    if not requester_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user identity",
        )
    return requester_id
