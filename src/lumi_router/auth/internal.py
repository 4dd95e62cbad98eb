from __future__ import annotations

import logging
import os
import time
import jwt
from typing import Optional, Dict, Any
from fastapi import HTTPException, Header, status

log = logging.getLogger("lumi.auth")

# =========================
# HS256 token config
# =========================
# The identity provider signs the user in; the front end trades that for one
# of these short-lived tokens. Only `sub` (the stable user id) is consumed here.
ALGO = "HS256"


def _secret() -> str:
    return os.getenv("JWT_SECRET", "dev_secret_do_not_use_in_prod")


def _iss() -> str:
    return os.getenv("JWT_ISS", "lumi")


def _aud() -> str:
    return os.getenv("JWT_AUD", "lumi-api")


def _access_ttl() -> int:
    return int(os.getenv("JWT_ACCESS_TTL_SEC", "900"))  # 15m


def _now() -> int:
    return int(time.time())


# -------------------------
# Issuer
# -------------------------
def issue_access_token(
    sub: str,
    extra: Optional[Dict[str, Any]] = None,
    ttl: Optional[int] = None,
) -> str:
    now = _now()
    payload: Dict[str, Any] = {
        "iss": _iss(),
        "aud": _aud(),
        "sub": sub,
        "iat": now,
        "nbf": now,
        "exp": now + (ttl or _access_ttl()),
    }
    if extra:
        payload.update(extra)
    log.debug("issued access token sub=%s exp=%s", sub, payload["exp"])
    return jwt.encode(payload, _secret(), algorithm=ALGO)


def make_dev_token(sub: str = "dev-user", ttl_sec: int = 900) -> str:
    """
    Minimal helper to mint a short-lived dev access token for tests and local runs.
    """
    return issue_access_token(sub=sub, ttl=ttl_sec)


# -------------------------
# Verifier
# -------------------------
def verify_bearer(token: str) -> Dict[str, Any]:
    """
    Verify an HS256 access token (issuer/audience/signature/expiry).
    Raises FastAPI HTTPException(401) on failure.
    """
    try:
        claims = jwt.decode(
            token,
            _secret(),
            algorithms=[ALGO],
            audience=_aud(),
            issuer=_iss(),
            options={"require": ["exp", "iss", "aud", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid token: exp (expired)",
        )
    except jwt.InvalidIssuerError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"invalid token: issuer mismatch (want={_iss()})",
        )
    except jwt.InvalidAudienceError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"invalid token: audience mismatch (want={_aud()})",
        )
    except jwt.PyJWTError as ex:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"invalid token: {ex}",
        )
    return claims


async def current_user_id(authorization: Optional[str] = Header(None)) -> str:
    """FastAPI dependency: the caller's stable user id (token `sub`)."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing token")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Missing token")
    claims = verify_bearer(token)
    return str(claims["sub"])
