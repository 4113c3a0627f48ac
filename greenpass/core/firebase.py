"""Firebase Admin SDK bootstrap.

Only token verification is used, so the default app is initialised once with
Application Default Credentials (GOOGLE_APPLICATION_CREDENTIALS) and an
optional explicit project id for environments without one on the credential.
"""

import logging

from firebase_admin import get_app, initialize_app

from greenpass.core.settings import get_settings

logger = logging.getLogger(__name__)


def init_firebase() -> None:
    """Initialize Firebase Admin SDK (idempotent)."""
    try:
        get_app()
    except ValueError:
        settings = get_settings()
        options = (
            {"projectId": settings.firebase_project_id}
            if settings.firebase_project_id
            else None
        )
        initialize_app(options=options)
        logger.info(
            "Firebase initialised (project=%s)",
            settings.firebase_project_id or "from credentials",
        )
