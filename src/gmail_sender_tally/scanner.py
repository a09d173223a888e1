"""Scan orchestration - pages through the mailbox and tallies senders."""

from __future__ import annotations

from loguru import logger

from .constants import DEFAULT_BATCH_CAP, FROM_HEADER, PAGE_SIZE, TOP_SENDERS_LIMIT
from .models import ScanState, ScanSummary, SenderCount, Standings
from .source import MailSource
from .store import StateStore


def rank_senders(sender_counts: dict[str, int], limit: int | None = TOP_SENDERS_LIMIT) -> list[SenderCount]:
    """Rank senders by count, descending; ties keep insertion order."""
    ranked = sorted(sender_counts.items(), key=lambda item: -item[1])
    if limit is not None:
        ranked = ranked[:limit]
    return [SenderCount(sender=sender, count=count) for sender, count in ranked]


def summarize(state: ScanState, limit: int = TOP_SENDERS_LIMIT) -> Standings:
    """Report the current standings without touching the mailbox."""
    return Standings(
        top_senders=rank_senders(state.sender_counts, limit),
        total_processed=state.total_processed,
        done=state.done,
    )


def scan_top_senders(
    source: MailSource,
    store: StateStore,
    batch_cap: int = DEFAULT_BATCH_CAP,
    page_size: int = PAGE_SIZE,
) -> ScanSummary:
    """Advance the sender scan by at most ``batch_cap`` new messages.

    Pages are committed one at a time: the From header of every new message
    on a page is fetched before anything is recorded, and the state is saved
    after each page. A failure while handling a page leaves the stored state
    at the previous page, so the next call retries it from the same cursor.
    """
    if batch_cap < 1:
        raise ValueError("batch_cap must be at least 1")
    if page_size < 1:
        raise ValueError("page_size must be at least 1")

    state = store.load()
    if state.done:
        logger.info("Previous pass finished, rescanning from the first page for new mail")
        state.begin_pass()

    processed_this_call = 0

    while True:
        cursor = state.page_cursor
        page = source.list_message_ids(cursor, page_size)
        new_ids = state.unseen(page.ids)

        senders = source.get_header_values(new_ids, FROM_HEADER) if new_ids else {}
        state.commit_page(senders, page.next_cursor)
        store.save(state)

        processed_this_call += len(new_ids)
        logger.info(
            f"Committed page: {len(new_ids)} new of {len(page.ids)} listed, "
            f"{state.total_processed} processed in total"
        )

        if page.next_cursor is None:
            logger.info("Mailbox exhausted")
            break
        if processed_this_call >= batch_cap:
            break
        if page.next_cursor == cursor:
            logger.warning(f"Page cursor {cursor!r} did not advance, stopping")
            break

    standings = summarize(state)
    return ScanSummary(
        processed_this_call=processed_this_call,
        total_processed=standings.total_processed,
        top_senders=standings.top_senders,
        done=state.done,
    )
