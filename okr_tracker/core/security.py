"""JWT handling for access tokens issued by the hosted auth provider."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
import jwt
from fastapi import HTTPException, Request, status
from .config import settings

logger = logging.getLogger(__name__)

NOT_AUTHENTICATED = "Nicht authentifiziert"


@dataclass(frozen=True)
class AuthUser:
    """Identity taken from a verified access token."""
    id: str
    email: Optional[str] = None


def create_jwt_token(data: dict, expires_delta: timedelta = timedelta(hours=1)) -> str:
    """
    Creates a JWT signed with the project secret.

    The hosted provider issues the real tokens; this mirrors their claims
    (``sub``, ``email``, ``aud``) so scripts and tests can mint one.

    Args:
        data (dict): The payload data to be encoded in the JWT.
        expires_delta (timedelta, optional): The time until the token expires.
            Defaults to 1 hour.

    Returns:
        str: The encoded JWT string.
    """
    now = datetime.now(timezone.utc)
    to_encode = {"aud": settings.JWT_AUDIENCE, **data}
    to_encode.update({
        "exp": now + expires_delta,
        "iat": now
    })
    return jwt.encode(to_encode, settings.SUPABASE_JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_jwt_token(token: str) -> dict:
    """Decodes and validates a JWT token.

    Args:
        token (str): The JWT token string to decode.

    Returns:
        dict: The decoded token payload containing the claims.

    Raises:
        jwt.PyJWTError: If the token is invalid, expired, or improperly formatted,
            or no signing secret is configured.
    """
    return jwt.decode(
        token,
        settings.SUPABASE_JWT_SECRET,
        algorithms=[settings.JWT_ALGORITHM],
        audience=settings.JWT_AUDIENCE,
    )


def extract_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("authorization", "")
    scheme, _, credentials = auth_header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(settings.AUTH_COOKIE_NAME)


async def get_current_user(request: Request) -> AuthUser:
    """
    Dependency to get the authenticated identity from the bearer token
    or the session cookie. Raises 401 if not authenticated.
    """
    token = extract_token(request)

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=NOT_AUTHENTICATED
        )

    try:
        payload = decode_jwt_token(token)
    except jwt.PyJWTError as e:
        logger.info("Rejected access token: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=NOT_AUTHENTICATED
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=NOT_AUTHENTICATED
        )

    request.state.user_id = user_id
    return AuthUser(id=user_id, email=payload.get("email"))
