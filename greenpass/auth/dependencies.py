"""Auth domain dependencies.

Resolves the calling identity from a Firebase session cookie or bearer ID
token. Onboarding creates the account row itself, so unlike most routes this
dependency does not require a local record to exist.
"""

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from greenpass.auth.exceptions import (
    InvalidCredentialsError,
    InvalidTokenError,
    SessionCookieError,
)
from greenpass.auth.schemas import Identity
from greenpass.auth.service import FirebaseAuthService, get_firebase_auth_service

SESSION_COOKIE = "session"

security = HTTPBearer(auto_error=False)


def get_current_identity(
    request: Request,
    firebase_auth: Annotated[FirebaseAuthService, Depends(get_firebase_auth_service)],
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(security)
    ] = None,
) -> Identity:
    """Verify Firebase authentication and return the caller's identity.

    Supports two authentication methods (in priority order):
    1. Session cookie (preferred for web apps)
    2. Bearer ID token (for API clients, mobile apps)

    Raises:
        InvalidTokenError: If the presented credential is invalid
        InvalidCredentialsError: If no credential was presented
    """
    claims = None

    session_cookie = request.cookies.get(SESSION_COOKIE)
    if session_cookie:
        try:
            claims = firebase_auth.verify_session_cookie(
                session_cookie, check_revoked=True
            )
        except SessionCookieError as e:
            raise InvalidTokenError() from e

    if claims is None and credentials is not None:
        claims = firebase_auth.verify_id_token(credentials.credentials)

    if claims is None:
        raise InvalidCredentialsError()

    return Identity(subject_id=claims.uid, email=claims.email, display_name=claims.name)


# Type aliases for dependency injection
CurrentIdentityDep = Annotated[Identity, Depends(get_current_identity)]
FirebaseAuthDep = Annotated[FirebaseAuthService, Depends(get_firebase_auth_service)]
