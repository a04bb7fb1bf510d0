"""Operator token creation and verification.

HS256 with the shared JWT_SECRET. Tokens carry ``type="operator"`` and are
issued out of band (see run_keeper_smoke.py) to whoever runs the scheduler or
the admin console; there is no login endpoint.
"""

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from config.settings import settings
from src.pm_common.errors import InvalidCredentialsError

OPERATOR_TOKEN_TYPE = "operator"


def create_operator_token(subject: str, expires_in: timedelta | None = None) -> str:
    """Issue an operator token (default lifetime: JWT_EXPIRE_MINUTES)."""
    now = datetime.now(UTC)
    payload = {
        "sub": subject,
        "type": OPERATOR_TOKEN_TYPE,
        "iat": now,
        "exp": now + (expires_in or timedelta(minutes=settings.JWT_EXPIRE_MINUTES)),
    }
    return str(jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM))


def decode_operator_token(token: str) -> dict[str, str]:
    """Decode and validate an operator token.

    Raises:
        InvalidCredentialsError: bad signature, expired, or not an operator token.
    """
    try:
        payload: dict[str, str] = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],  # Explicit list prevents algorithm confusion
        )
    except JWTError:
        raise InvalidCredentialsError() from None

    if payload.get("type") != OPERATOR_TOKEN_TYPE or not payload.get("sub"):
        raise InvalidCredentialsError()
    return payload
