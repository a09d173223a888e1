"""Shared fixtures for tests."""

from __future__ import annotations

import json

import pytest

from gmail_sender_tally.config import Settings
from gmail_sender_tally.errors import PartialPageFailure, RemoteUnavailable
from gmail_sender_tally.models import MessagePage
from gmail_sender_tally.store import StateStore


class FakeMailSource:
    """In-memory mail source keyed by page cursor."""

    def __init__(
        self,
        pages: dict[str | None, MessagePage],
        headers: dict[str, str | None],
        fail_ids: set[str] | None = None,
    ) -> None:
        self.pages = pages
        self.headers = headers
        self.fail_ids = fail_ids or set()
        self.list_calls: list[str | None] = []
        self.header_calls: list[list[str]] = []

    def list_message_ids(self, cursor: str | None, page_size: int) -> MessagePage:
        self.list_calls.append(cursor)
        if cursor not in self.pages:
            raise RemoteUnavailable(f"unknown cursor {cursor!r}")
        return self.pages[cursor]

    def get_header_value(self, message_id: str, header_name: str) -> str | None:
        if message_id in self.fail_ids:
            raise RemoteUnavailable(f"fetch failed for {message_id}")
        return self.headers.get(message_id)

    def get_header_values(self, message_ids: list[str], header_name: str) -> dict[str, str | None]:
        self.header_calls.append(list(message_ids))
        results: dict[str, str | None] = {}
        failed: list[str] = []
        for message_id in message_ids:
            try:
                results[message_id] = self.get_header_value(message_id, header_name)
            except RemoteUnavailable:
                failed.append(message_id)
        if failed:
            raise PartialPageFailure(failed, len(message_ids))
        return results


@pytest.fixture
def fake_mail_source():
    return FakeMailSource


@pytest.fixture
def make_source():
    """Build a FakeMailSource with ``num_pages`` pages of ``page_size`` ids.

    Page ``n`` is requested with cursor ``None`` (n=0) or ``"p<n>"``. The last
    page returns ``None`` as next cursor unless ``endless`` is set. Senders
    cycle through ``senders``.
    """

    def _make(
        num_pages: int = 1,
        page_size: int = 5,
        senders: list[str] | None = None,
        endless: bool = False,
    ) -> FakeMailSource:
        senders = senders or ["Alice <alice@example.com>", "Bob <bob@example.com>"]
        pages: dict[str | None, MessagePage] = {}
        headers: dict[str, str | None] = {}
        n = 0
        for p in range(num_pages):
            cursor = None if p == 0 else f"p{p}"
            is_last = p == num_pages - 1
            next_cursor = None if is_last and not endless else f"p{p + 1}"
            ids = []
            for _ in range(page_size):
                msg_id = f"m{n:04d}"
                ids.append(msg_id)
                headers[msg_id] = senders[n % len(senders)]
                n += 1
            pages[cursor] = MessagePage(ids=ids, next_cursor=next_cursor)
        return FakeMailSource(pages, headers)

    return _make


@pytest.fixture
def store(tmp_path):
    with StateStore(tmp_path / "state.db") as s:
        yield s


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        data_dir=tmp_path,
        client_id="test-client-id.apps.googleusercontent.com",
        client_secret="test-secret",
        batch_cap=1000,
        page_size=5,
    )


@pytest.fixture
def write_token(settings):
    """Write an authorized-user token file under ``settings.data_dir``.

    The token is expired unless ``expiry`` is given.
    """

    def _write(
        token: str = "old-access-token",
        refresh_token: str | None = "refresh-token",
        expiry: str = "2000-01-01T00:00:00Z",
    ):
        info = {
            "token": token,
            "refresh_token": refresh_token,
            "client_id": "test-client-id.apps.googleusercontent.com",
            "client_secret": "test-secret",
            "token_uri": "https://oauth2.googleapis.com/token",
            "expiry": expiry,
        }
        settings.token_path.write_text(json.dumps(info))
        return settings.token_path

    return _write
