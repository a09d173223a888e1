"""Mailbox access interface used by the scanner."""

from __future__ import annotations

from typing import Protocol

from gmail_sender_tally.models import MessagePage


class MailSource(Protocol):
    """What the scanner needs from a mailbox.

    Implementations raise ``RemoteUnavailable`` on transport or auth
    failures and ``PartialPageFailure`` when some of a batch of header
    fetches fail. They do not retry.
    """

    def list_message_ids(self, cursor: str | None, page_size: int) -> MessagePage: ...

    def get_header_value(self, message_id: str, header_name: str) -> str | None: ...

    def get_header_values(self, message_ids: list[str], header_name: str) -> dict[str, str | None]: ...
