from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from auth.security import decode_identity_token, user_id_from_claims

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict:
    """Claims of the identity token sent as ``Authorization: Bearer``."""
    if credentials is None:
        raise _unauthorized("Missing bearer token")

    try:
        return decode_identity_token(credentials.credentials)
    except ValueError as exc:
        raise _unauthorized("Invalid or expired token") from exc


def get_current_user_id(current_user: dict = Depends(get_current_user)) -> str:
    try:
        return user_id_from_claims(current_user)
    except ValueError as exc:
        raise _unauthorized("Invalid token subject") from exc


def get_current_store(
    current_user: dict = Depends(get_current_user),
    user_id: str = Depends(get_current_user_id),
) -> dict:
    # A seller's store is keyed by the seller's own identity.
    return {
        "store_id": user_id,
        "store_name": str(current_user.get("store_name") or "").strip(),
    }


def require_admin(current_user: dict = Depends(get_current_user)) -> dict:
    if not current_user.get("is_admin", False):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin permissions required",
        )
    return current_user
