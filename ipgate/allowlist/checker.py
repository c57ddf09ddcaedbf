"""Allow-list checker for ipgate.

The allow-list is a plain text file with one client address per line. It is
re-read on every check: there is no cache, so edits take effect on the next
request without a restart.

Matching is an exact, case-sensitive string comparison against each line:
  - no CIDR or subnet semantics
  - no normalization (``::ffff:10.0.0.1`` does not match ``10.0.0.1``)
  - no trimming; the file is read without newline translation, so a line
    ending in ``\\r`` (CRLF files) never matches a clean address
"""

from __future__ import annotations

import asyncio
from typing import Any

from ipgate.errors import AllowListReadError
from ipgate.utils.logger import get_logger

logger = get_logger(__name__)


def read_allowlist(path: str) -> list[str]:
    """Read the allow-list file and split it on ``\\n``.

    Blank lines come back as empty-string entries. Bytes that are not valid
    UTF-8 become U+FFFD, so only the lines containing them stop matching.

    Raises:
        AllowListReadError: File missing or unreadable.
    """
    try:
        with open(path, encoding="utf-8", errors="replace", newline="") as fh:
            data = fh.read()
    except OSError as exc:
        raise AllowListReadError(path, exc) from exc
    return data.split("\n")


class AllowListChecker:
    """Admission lookup bound to one allow-list file.

    Holds only the path, so a single instance is safe to share between
    concurrent requests.
    """

    def __init__(self, path: str) -> None:
        self.path = path

    async def is_allowed(self, address: Any) -> bool:
        """Return True if ``address`` appears verbatim as a line of the allow-list.

        Anything other than a non-empty string is rejected without touching
        storage.

        Raises:
            AllowListReadError: The allow-list could not be read.
        """
        if not isinstance(address, str) or not address:
            return False

        loop = asyncio.get_running_loop()
        entries = await loop.run_in_executor(None, read_allowlist, self.path)

        if address in entries:
            return True

        if address + "\r" in entries:
            logger.warning(
                "Allow-list entry has a trailing carriage return and was not matched",
                path=self.path,
                address=address,
            )
        return False
