"""Exception hierarchy shared by the scanner, the store and the Gmail adapter."""

from __future__ import annotations


class TallyError(Exception):
    """Base class for all Gmail Sender Tally errors."""


class RemoteUnavailable(TallyError):
    """A Gmail API call failed (network, auth, quota or HTTP status)."""


class PartialPageFailure(RemoteUnavailable):
    """One or more header fetches of a page failed; the page was not committed."""

    def __init__(self, failed_ids: list[str], total: int) -> None:
        self.failed_ids = failed_ids
        self.total = total
        super().__init__(
            f"Header fetch failed for {len(failed_ids)} of {total} messages; "
            "page discarded, scan will resume from the last committed cursor"
        )


class CorruptState(TallyError):
    """The persisted scan state cannot be read back."""


class StateConflict(TallyError):
    """The scan state was modified by another writer since it was loaded."""


class NotAuthenticated(TallyError):
    """No valid stored Gmail credentials."""


class ConfigError(TallyError):
    """Required configuration is missing."""
