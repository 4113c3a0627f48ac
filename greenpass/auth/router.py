"""Auth domain router.

Sign-in happens in the browser against Firebase; the service only needs to
end sessions. Logging out leaves onboarding progress untouched so the next
session resumes where this one stopped.
"""

from fastapi import APIRouter, Request, Response

from greenpass.auth.dependencies import SESSION_COOKIE, FirebaseAuthDep
from greenpass.auth.exceptions import InvalidCredentialsError
from greenpass.auth.schemas import AuthLogout
from greenpass.core.constants import CommonResponses, Routes

router = APIRouter(prefix=Routes.AUTH.prefix, tags=[Routes.AUTH.tag])


@router.post(
    "/logout",
    response_model=AuthLogout,
    responses={**CommonResponses.UNAUTHORIZED},
)
async def logout(
    request: Request,
    response: Response,
    firebase_auth: FirebaseAuthDep,
):
    """Clear Firebase session cookie and revoke refresh tokens."""
    session_cookie = request.cookies.get(SESSION_COOKIE)
    if not session_cookie:
        raise InvalidCredentialsError()

    # Always clear cookie on logout
    response.delete_cookie(key=SESSION_COOKIE)
    firebase_auth.logout(session_cookie)
    return AuthLogout()
