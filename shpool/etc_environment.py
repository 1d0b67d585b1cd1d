"""Parsing of /etc/environment, compatible with pam_env's quirks.

The format is ill defined and pam_env's parser has a number of odd
behaviours; they are reproduced here on purpose.
"""

import logging
from collections.abc import Iterable

log = logging.getLogger(__name__)


def parse_compat(file: Iterable[str]) -> list[tuple[str, str]]:
    """Parse the lines of an /etc/environment style file into (key, value) pairs."""
    pairs: list[tuple[str, str]] = []
    for raw in file:
        line = raw.strip()
        if not line or line.startswith("#"):
            log.debug("parsing /etc/environment: blank or comment line")
            continue

        # Exactly one space after `export` is required.
        line = line.removeprefix("export ")

        # Anything from the first '#' on is a comment, quotes or not.
        line = line.partition("#")[0]

        key, sep, val = line.partition("=")
        if not sep:
            log.warning("parsing /etc/environment: split failed")
            continue
        if not key:
            log.warning("parsing /etc/environment: empty key")
            continue
        if not key.isalnum():
            log.warning("parsing /etc/environment: non alphanum key")
            continue

        # Either quote kind may close either quote kind, and an unmatched
        # trailing quote is left alone.
        has_leading_quote = val.startswith(("'", '"'))
        val = val.removeprefix("'").removeprefix('"')
        if has_leading_quote:
            val = val.removesuffix("'").removesuffix('"')
        pairs.append((key, val))

    return pairs