"""Entry-hint session context.

Marketing pages and the SSO bridge send new users to onboarding with a role
token (``?role=agent&lock=1`` or the equivalent session cookies). The value is
handed to the state machine once, read during entry resolution, and cleared
when onboarding finalizes so later visits do not re-lock the role.
"""

import logging
from dataclasses import dataclass

from greenpass.onboarding.roles import Role, parse_role

logger = logging.getLogger(__name__)

_FALSE_TOKENS = frozenset({"0", "false", "no", "off"})


@dataclass
class SessionContext:
    role_hint: str | None = None
    lock: bool = True
    source: str = "none"
    cleared: bool = False

    @classmethod
    def from_tokens(
        cls, role: str | None, lock: str | None = None, source: str = "query"
    ) -> "SessionContext":
        """Build a context from raw query or cookie values.

        A hint pins the role unless ``lock`` is explicitly falsy, in which
        case the role is only preselected.
        """
        if not role:
            return cls()
        pinned = lock is None or lock.strip().lower() not in _FALSE_TOKENS
        context = cls(role_hint=role, lock=pinned, source=source)
        if context.role is None:
            logger.warning("Ignoring unknown role hint %r from %s", role, source)
        return context

    @property
    def role(self) -> Role | None:
        if self.cleared:
            return None
        return parse_role(self.role_hint)

    def clear(self) -> None:
        """Drop the hint; the HTTP layer deletes the backing cookies."""
        self.role_hint = None
        self.cleared = True
