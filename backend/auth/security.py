from datetime import datetime, timedelta, timezone
import os

from jose import ExpiredSignatureError, JWTError, jwt

DEFAULT_ALGORITHM = "HS256"
DEFAULT_JWT_ISSUER = "firesale-identity"
DEFAULT_TOKEN_EXPIRE_MINUTES = 120


def get_identity_token_config() -> dict:
    secret_key = os.getenv("JWT_SECRET", "").strip()
    algorithm = os.getenv("JWT_ALGORITHM", DEFAULT_ALGORITHM).strip()
    issuer = os.getenv("JWT_ISSUER", DEFAULT_JWT_ISSUER).strip()

    if not secret_key:
        raise RuntimeError("JWT_SECRET is required")
    if not algorithm:
        raise RuntimeError("JWT_ALGORITHM is required")
    if not issuer:
        raise RuntimeError("JWT_ISSUER is required")

    return {
        "secret_key": secret_key,
        "algorithm": algorithm,
        "issuer": issuer,
    }


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def create_identity_token(
    user_id: str,
    *,
    is_admin: bool = False,
    store_name: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Sign a token the way the identity provider does; used by local tooling and tests."""
    settings = get_identity_token_config()
    now = _utc_now()
    expire_at = now + (
        expires_delta
        if expires_delta is not None
        else timedelta(minutes=DEFAULT_TOKEN_EXPIRE_MINUTES)
    )
    claims = {
        "sub": str(user_id),
        "is_admin": bool(is_admin),
        "iss": settings["issuer"],
        "iat": int(now.timestamp()),
        "exp": int(expire_at.timestamp()),
    }
    if store_name:
        claims["store_name"] = store_name
    return jwt.encode(
        claims,
        settings["secret_key"],
        algorithm=settings["algorithm"],
    )


def decode_identity_token(token: str) -> dict:
    settings = get_identity_token_config()
    try:
        payload = jwt.decode(
            token,
            settings["secret_key"],
            algorithms=[settings["algorithm"]],
            issuer=settings["issuer"],
            options={"verify_aud": False},
        )
    except ExpiredSignatureError as exc:
        raise ValueError("Token expired") from exc
    except JWTError as exc:
        raise ValueError("Invalid token") from exc

    if not str(payload.get("sub", "")).strip():
        raise ValueError("Token payload is missing subject")
    return payload


def user_id_from_claims(claims: dict) -> str:
    raw = str(claims.get("sub") or "").strip()
    if not raw:
        raise ValueError("Invalid token subject")
    return raw
