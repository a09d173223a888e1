"""Gmail API client: message listing, batched header fetches, search and profile."""

from __future__ import annotations

import httplib2
from google.auth.exceptions import GoogleAuthError
from googleapiclient.errors import HttpError
from loguru import logger

from gmail_sender_tally.constants import (
    BATCH_SIZE,
    FROM_HEADER,
    NO_SUBJECT,
    PAGE_SIZE,
    SEARCH_HEADERS,
    SUBJECT_HEADER,
    UNKNOWN_SENDER,
)
from gmail_sender_tally.errors import PartialPageFailure, RemoteUnavailable
from gmail_sender_tally.models import MessagePage

_TRANSPORT_ERRORS = (HttpError, GoogleAuthError, httplib2.HttpLib2Error, OSError)


def _execute(request, action: str) -> dict:
    """Execute a single API request, mapping transport failures."""
    try:
        return request.execute()
    except _TRANSPORT_ERRORS as exc:
        raise RemoteUnavailable(f"Gmail {action} failed: {exc}") from exc


def _header_value(message: dict, header_name: str) -> str | None:
    """Return the first header called ``header_name`` (case-insensitive), raw."""
    wanted = header_name.lower()
    for h in message.get("payload", {}).get("headers", []):
        if h["name"].lower() == wanted:
            return h["value"]
    return None


class GmailSource:
    """Mail source backed by an authenticated Gmail API service object."""

    def __init__(self, service, query: str | None = None, batch_size: int = BATCH_SIZE) -> None:
        self.service = service
        self.query = query
        self.batch_size = batch_size

    def list_message_ids(self, cursor: str | None, page_size: int = PAGE_SIZE) -> MessagePage:
        """List one page of message ids starting at ``cursor``."""
        kwargs: dict = {"userId": "me", "maxResults": page_size, "fields": "messages/id,nextPageToken"}
        if self.query is not None:
            kwargs["q"] = self.query
        if cursor is not None:
            kwargs["pageToken"] = cursor

        resp = _execute(self.service.users().messages().list(**kwargs), "message list")
        ids = [msg["id"] for msg in resp.get("messages", [])]

        next_cursor = resp.get("nextPageToken")
        if next_cursor == "":
            next_cursor = None
        return MessagePage(ids=ids, next_cursor=next_cursor)

    def get_header_value(self, message_id: str, header_name: str) -> str | None:
        """Fetch a single header of one message."""
        message = _execute(
            self.service.users().messages().get(
                userId="me",
                id=message_id,
                format="metadata",
                metadataHeaders=[header_name],
            ),
            f"metadata fetch for {message_id}",
        )
        return _header_value(message, header_name)

    def get_header_values(self, message_ids: list[str], header_name: str) -> dict[str, str | None]:
        """Fetch one header for many messages using batch requests.

        Either every message is fetched and the full mapping is returned, or
        ``PartialPageFailure`` is raised.
        """
        messages = self.fetch_metadata(message_ids, [header_name])
        return {msg_id: _header_value(messages[msg_id], header_name) for msg_id in message_ids}

    def fetch_metadata(self, message_ids: list[str], headers: list[str]) -> dict[str, dict]:
        """Fetch metadata resources for ``message_ids`` in BatchHttpRequests.

        All sub-requests of a batch settle before the batch returns. Once any
        of them has failed no further batches are sent, since the caller
        discards the whole set anyway.
        """
        results: dict[str, dict] = {}
        failed: list[str] = []

        for start in range(0, len(message_ids), self.batch_size):
            chunk = message_ids[start:start + self.batch_size]
            batch = self.service.new_batch_http_request()

            def _make_callback(msg_id: str):
                def _cb(request_id, response, exception):
                    if exception is not None:
                        logger.warning(f"Metadata fetch for {msg_id} failed: {exception}")
                        failed.append(msg_id)
                        return
                    results[msg_id] = response

                return _cb

            for msg_id in chunk:
                batch.add(
                    self.service.users().messages().get(
                        userId="me",
                        id=msg_id,
                        format="metadata",
                        metadataHeaders=headers,
                    ),
                    callback=_make_callback(msg_id),
                )

            try:
                batch.execute()
            except _TRANSPORT_ERRORS as exc:
                settled = set(results) | set(failed)
                unsettled = [m for m in message_ids[start:] if m not in settled]
                raise PartialPageFailure(failed + unsettled, len(message_ids)) from exc

            if failed:
                break

        if failed:
            raise PartialPageFailure(failed, len(message_ids))
        return results


def build_search_query(
    sender: str | None = None,
    subject: str | None = None,
    has_attachment: bool = False,
    newer_than: str | None = None,
    older_than: str | None = None,
    label: str | None = None,
) -> str:
    """Build a Gmail search string from the individual filters."""
    parts: list[str] = []
    if sender:
        parts.append(f"from:{sender}")
    if subject:
        parts.append(f'subject:"{subject}"')
    if has_attachment:
        parts.append("has:attachment")
    if newer_than:
        parts.append(f"newer_than:{newer_than}")
    if older_than:
        parts.append(f"older_than:{older_than}")
    if label:
        parts.append(f"label:{label}")
    return " ".join(parts)


def search_messages(service, query: str, max_results: int) -> list[dict]:
    """Return the first page of messages matching ``query`` with sender and subject."""
    resp = _execute(
        service.users().messages().list(userId="me", q=query, maxResults=max_results),
        "message search",
    )
    ids = [msg["id"] for msg in resp.get("messages", [])]
    if not ids:
        return []

    messages = GmailSource(service).fetch_metadata(ids, SEARCH_HEADERS)

    return [
        {
            "id": msg_id,
            "from": _header_value(messages[msg_id], FROM_HEADER) or UNKNOWN_SENDER,
            "subject": _header_value(messages[msg_id], SUBJECT_HEADER) or NO_SUBJECT,
            "snippet": messages[msg_id].get("snippet", ""),
        }
        for msg_id in ids
    ]


def get_profile(service) -> dict:
    """Return the Gmail profile of the authenticated account."""
    return _execute(service.users().getProfile(userId="me"), "profile lookup")
