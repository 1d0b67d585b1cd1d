"""Small helpers shared by several subcommands."""

import os
import sys
from collections.abc import Iterable

SESSION_NAME_VAR = "SHPOOL_SESSION_NAME"


def resolve_sessions(sessions: Iterable[str], action: str) -> list[str]:
    """Return the sessions to act on.

    With no sessions given, fall back to the session this process is
    running inside of. Raises ValueError if there is still nothing to act on.
    """
    resolved = list(sessions)
    if not resolved:
        current = os.environ.get(SESSION_NAME_VAR)
        if current is not None:
            resolved.append(current)

    if not resolved:
        message = f"no session to {action}"
        print(message, file=sys.stderr)
        raise ValueError(message)

    return resolved