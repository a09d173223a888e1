"""Tests for the scanner module."""

import pytest

from gmail_sender_tally.errors import PartialPageFailure
from gmail_sender_tally.models import MessagePage, ScanState, SenderCount
from gmail_sender_tally.scanner import rank_senders, scan_top_senders, summarize


def test_single_page_mailbox_completes(make_source, store):
    """A mailbox with one page is done after one call."""
    source = make_source(num_pages=1, page_size=5)
    summary = scan_top_senders(source, store, batch_cap=1000, page_size=5)

    assert summary.processed_this_call == 5
    assert summary.total_processed == 5
    assert summary.done is True
    assert summary.status == "complete"
    assert summary.top_senders == [
        SenderCount("Alice <alice@example.com>", 3),
        SenderCount("Bob <bob@example.com>", 2),
    ]


def test_batch_cap_stops_after_two_pages(make_source, store):
    """batch_cap=10 with pages of 5 and non-null cursors processes exactly 10."""
    source = make_source(num_pages=4, page_size=5, endless=True)
    summary = scan_top_senders(source, store, batch_cap=10, page_size=5)

    assert summary.processed_this_call == 10
    assert summary.done is False
    assert summary.status == "partial"
    assert source.list_calls == [None, "p1"]
    assert store.load().page_cursor == "p2"


def test_null_cursor_means_done_even_with_cap_left(make_source, store):
    source = make_source(num_pages=2, page_size=5)
    summary = scan_top_senders(source, store, batch_cap=1000, page_size=5)

    assert summary.done is True
    assert summary.processed_this_call == 10


def test_page_larger_than_cap_is_committed_whole(make_source, store):
    """The cap is checked between pages, never inside one."""
    source = make_source(num_pages=2, page_size=5)
    summary = scan_top_senders(source, store, batch_cap=1, page_size=5)

    assert summary.processed_this_call == 5
    assert summary.done is False


def test_resumes_from_saved_cursor(make_source, store):
    source = make_source(num_pages=3, page_size=5)

    first = scan_top_senders(source, store, batch_cap=5, page_size=5)
    second = scan_top_senders(source, store, batch_cap=5, page_size=5)
    third = scan_top_senders(source, store, batch_cap=5, page_size=5)

    assert [s.total_processed for s in (first, second, third)] == [5, 10, 15]
    assert [s.done for s in (first, second, third)] == [False, False, True]
    assert source.list_calls == [None, "p1", "p2"]


def test_state_saved_after_every_page(make_source, store):
    source = make_source(num_pages=3, page_size=5)
    scan_top_senders(source, store, batch_cap=1000, page_size=5)

    # fresh insert plus one update per page
    assert store.load().version == 3


def test_non_advancing_source_is_idempotent(fake_mail_source, store):
    """Re-fetching the same page with the same cursor never double counts."""
    ids = [f"m{i}" for i in range(5)]

    source = fake_mail_source(
        pages={
            None: MessagePage(ids=ids, next_cursor="c1"),
            "c1": MessagePage(ids=ids, next_cursor="c1"),
        },
        headers={i: "Alice <alice@example.com>" for i in ids},
    )

    scan_top_senders(source, store, batch_cap=1000, page_size=5)
    after_first = store.load()
    second = scan_top_senders(source, store, batch_cap=1000, page_size=5)
    after_second = store.load()

    assert second.processed_this_call == 0
    assert after_second.processed_ids == after_first.processed_ids
    assert after_second.sender_counts == after_first.sender_counts == {"Alice <alice@example.com>": 5}


def test_monotonic_growth(make_source, store):
    source = make_source(num_pages=4, page_size=5, senders=["a", "b", "c"])
    previous = 0

    for _ in range(5):
        scan_top_senders(source, store, batch_cap=5, page_size=5)
        state = store.load()
        assert state.total_processed >= previous
        assert sum(state.sender_counts.values()) + state.headerless_count == state.total_processed
        previous = state.total_processed

    assert previous == 20


def test_failed_header_fetch_discards_whole_page(make_source, store):
    """If the 3rd of 5 header fetches fails, none of the page is committed."""
    source = make_source(num_pages=3, page_size=5)
    second_page = source.pages["p1"].ids
    source.fail_ids = {second_page[2]}

    with pytest.raises(PartialPageFailure) as excinfo:
        scan_top_senders(source, store, batch_cap=1000, page_size=5)

    assert excinfo.value.failed_ids == [second_page[2]]
    state = store.load()
    assert state.total_processed == 5
    assert not set(second_page) & set(state.processed_ids)
    assert state.page_cursor == "p1"

    # recovery retries the same page
    source.fail_ids = set()
    summary = scan_top_senders(source, store, batch_cap=1000, page_size=5)
    assert source.list_calls[-3:] == ["p1", "p1", "p2"]
    assert summary.total_processed == 15
    assert summary.done is True


def test_failure_on_first_page_persists_nothing(make_source, store):
    source = make_source(num_pages=1, page_size=5)
    source.fail_ids = {"m0000"}

    with pytest.raises(PartialPageFailure):
        scan_top_senders(source, store, batch_cap=1000, page_size=5)

    assert store.load() == ScanState()


def test_missing_from_header_still_marks_processed(make_source, store):
    source = make_source(num_pages=1, page_size=3, senders=["a"])
    source.headers["m0001"] = None

    summary = scan_top_senders(source, store, batch_cap=1000, page_size=3)
    state = store.load()

    assert summary.processed_this_call == 3
    assert "m0001" in state.processed_ids
    assert state.sender_counts == {"a": 2}
    assert state.headerless_count == 1


def test_duplicate_ids_within_page_counted_once(fake_mail_source, store):
    source = fake_mail_source(
        pages={None: MessagePage(ids=["x", "y", "x"], next_cursor=None)},
        headers={"x": "a", "y": "b"},
    )
    summary = scan_top_senders(source, store)

    assert summary.processed_this_call == 2
    assert source.header_calls == [["x", "y"]]
    assert store.load().processed_ids == ["x", "y"]


def test_completed_scan_starts_new_pass_for_new_mail(make_source, store):
    source = make_source(num_pages=2, page_size=3, senders=["a"])
    scan_top_senders(source, store, batch_cap=1000, page_size=3)

    # new mail arrives at the head of the mailbox
    first_page = source.pages[None]
    source.pages[None] = MessagePage(ids=["new1"] + first_page.ids, next_cursor=first_page.next_cursor)
    source.headers["new1"] = "z"

    summary = scan_top_senders(source, store, batch_cap=1000, page_size=3)

    assert summary.processed_this_call == 1
    assert summary.total_processed == 7
    assert summary.done is True
    assert store.load().sender_counts == {"a": 6, "z": 1}


def test_empty_mailbox_is_done_and_started(fake_mail_source, store):
    source = fake_mail_source(pages={None: MessagePage(ids=[], next_cursor=None)}, headers={})
    summary = scan_top_senders(source, store)
    state = store.load()

    assert summary.done is True
    assert summary.total_processed == 0
    assert state.started is True
    assert source.header_calls == []


@pytest.mark.parametrize("kwargs", [{"batch_cap": 0}, {"page_size": 0}])
def test_invalid_limits(make_source, store, kwargs):
    with pytest.raises(ValueError):
        scan_top_senders(make_source(), store, **kwargs)


def test_rank_senders_ties_keep_insertion_order():
    ranked = rank_senders({"a": 3, "b": 5, "c": 5, "d": 1})
    assert [(s.sender, s.count) for s in ranked] == [("b", 5), ("c", 5), ("a", 3), ("d", 1)]


def test_rank_senders_limit():
    counts = {f"s{i}": i for i in range(10)}
    assert [s.sender for s in rank_senders(counts)] == ["s9", "s8", "s7", "s6", "s5"]
    assert len(rank_senders(counts, limit=None)) == 10


def test_summarize_does_not_change_state():
    state = ScanState(
        processed_ids=["1", "2", "3"],
        sender_counts={"a": 1, "b": 2},
        page_cursor="next",
        started=True,
    )
    standings = summarize(state)

    assert standings.total_processed == 3
    assert standings.top_senders == [SenderCount("b", 2), SenderCount("a", 1)]
    assert standings.done is False
    assert state.page_cursor == "next"
    assert state.sender_counts == {"a": 1, "b": 2}
