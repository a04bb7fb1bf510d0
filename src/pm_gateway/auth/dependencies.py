"""FastAPI dependency: get_current_operator.

Usage in any keeper/admin router:
    from src.pm_gateway.auth.dependencies import get_current_operator

    @router.post("/keeper/auto-manage")
    async def auto_manage(operator: Annotated[str, Depends(get_current_operator)]):
        ...
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.pm_common.errors import InvalidCredentialsError
from src.pm_gateway.auth.jwt_handler import decode_operator_token

_bearer_scheme = HTTPBearer(auto_error=False)

# Reusable 401 exception with WWW-Authenticate header
_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired operator token",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_operator(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> str:
    """Validate the Bearer operator token and return its subject.

    Raises HTTP 401 if the token is missing, invalid, expired or of another type.
    """
    if credentials is None:
        raise _CREDENTIALS_EXCEPTION
    try:
        payload = decode_operator_token(credentials.credentials)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None
    return payload["sub"]
