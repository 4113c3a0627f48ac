"""
App-wide constants for route configuration.

This module provides a single source of truth for route prefixes, tags,
and common response definitions for API routes.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape


@dataclass(frozen=True)
class RouteConfig:
    """Configuration for a route group."""

    prefix: str
    tag: str


class Routes:
    """Route configurations for all API endpoints."""

    AUTH = RouteConfig(prefix="/auth", tag="auth")
    ACCOUNT = RouteConfig(prefix="/accounts", tag="accounts")
    ONBOARDING = RouteConfig(prefix="/onboarding", tag="onboarding")
    HEALTH = RouteConfig(prefix="/health", tag="health")


# Common response definitions for reuse across routers
# Use these when configuring APIRouter or individual endpoints
class CommonResponses:
    """Standard HTTP error response definitions for OpenAPI documentation."""

    UNAUTHORIZED: dict[int, dict[str, Any]] = {
        401: {"description": "Not authenticated or invalid credentials"}
    }
    NOT_FOUND: dict[int, dict[str, Any]] = {404: {"description": "Resource not found"}}
    CONFLICT: dict[int, dict[str, Any]] = {
        409: {"description": "Action does not apply to the current onboarding step"}
    }
    BAD_REQUEST: dict[int, dict[str, Any]] = {
        400: {"description": "Invalid request data"}
    }
    PAYMENT_FAILED: dict[int, dict[str, Any]] = {
        402: {"description": "Payment could not be completed, retry or skip"},
        502: {"description": "Payment provider unavailable"},
    }
    UNAVAILABLE: dict[int, dict[str, Any]] = {
        503: {"description": "Progress could not be saved, retry the same action"}
    }


# HTML Templates Directory
EmailTemplatesDir = Path(__file__).parent.parent / "templates" / "emails"

# Jinja2 environment for email templates (rendered at send time)
JinjaEmailTemplatesEnv = Environment(
    loader=FileSystemLoader(str(EmailTemplatesDir)),
    autoescape=select_autoescape(["html", "xml"]),
)
