"""Firebase Authentication Service.

Thin wrapper over the Firebase Admin SDK for verifying the credentials the
front end sends: session cookies (web) and ID tokens (mobile, API clients).
Sign-in itself happens in the browser; this service never handles passwords.
"""

import contextlib
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Protocol

from firebase_admin import auth as firebase_admin_auth
from firebase_admin.exceptions import FirebaseError

from greenpass.auth.exceptions import InvalidTokenError, SessionCookieError


@dataclass(frozen=True)
class TokenClaims:
    """Decoded token claims from Firebase."""

    uid: str
    email: str | None = None
    name: str | None = None


class FirebaseAuthServiceProtocol(Protocol):
    """Protocol for Firebase authentication operations."""

    def verify_session_cookie(
        self, session_cookie: str, check_revoked: bool = True
    ) -> TokenClaims:
        """Verify session cookie and return claims."""
        ...

    def verify_id_token(self, id_token: str) -> TokenClaims:
        """Verify ID token and return claims."""
        ...

    def revoke_refresh_tokens(self, uid: str) -> None:
        """Revoke all refresh tokens for a user."""
        ...

    def logout(self, session_cookie: str) -> None:
        """Logout user by revoking their refresh tokens."""
        ...


class FirebaseAuthService:
    """Firebase Authentication Service implementation."""

    @staticmethod
    def _extract_token_claims(
        decoded: dict[str, Any], *, allow_sub: bool
    ) -> TokenClaims:
        """Build TokenClaims from a decoded token.

        Session cookies may carry the subject only as ``sub``.
        """
        uid = decoded.get("uid")
        if allow_sub and not uid:
            uid = decoded.get("sub")

        if not uid:
            raise InvalidTokenError("Invalid token: missing uid")

        return TokenClaims(
            uid=uid, email=decoded.get("email"), name=decoded.get("name")
        )

    def verify_session_cookie(
        self, session_cookie: str, check_revoked: bool = True
    ) -> TokenClaims:
        """Verify session cookie and return claims.

        Args:
            session_cookie: Session cookie string
            check_revoked: Whether to check if token was revoked

        Returns:
            TokenClaims with uid, email and display name

        Raises:
            SessionCookieError: If verification fails
        """
        try:
            decoded = firebase_admin_auth.verify_session_cookie(
                session_cookie, check_revoked=check_revoked
            )
        except (ValueError, FirebaseError) as e:
            raise SessionCookieError("Invalid session cookie") from e
        try:
            return self._extract_token_claims(decoded, allow_sub=True)
        except InvalidTokenError as e:
            raise SessionCookieError(e.message) from e

    def verify_id_token(self, id_token: str) -> TokenClaims:
        """Verify ID token and return claims.

        Raises:
            InvalidTokenError: If verification fails
        """
        try:
            decoded = firebase_admin_auth.verify_id_token(id_token)
        except (ValueError, FirebaseError) as e:
            raise InvalidTokenError() from e
        return self._extract_token_claims(decoded, allow_sub=False)

    def revoke_refresh_tokens(self, uid: str) -> None:
        """Revoke all refresh tokens for a user (best-effort)."""
        with contextlib.suppress(FirebaseError):
            firebase_admin_auth.revoke_refresh_tokens(uid)

    def logout(self, session_cookie: str) -> None:
        """Logout user by revoking their refresh tokens.

        Cookie clearing is handled at the router level. Silently succeeds if
        the cookie is invalid (user already logged out).
        """
        try:
            claims = self.verify_session_cookie(session_cookie, check_revoked=False)
        except SessionCookieError:
            return
        self.revoke_refresh_tokens(claims.uid)


@lru_cache
def get_firebase_auth_service() -> FirebaseAuthService:
    """Get cached Firebase Auth Service instance."""
    return FirebaseAuthService()
