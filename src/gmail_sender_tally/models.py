"""Data models for Gmail Sender Tally."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class MessagePage:
    """One page of message ids returned by a mail source."""

    ids: list[str]
    next_cursor: str | None = None  # None means the mailbox is exhausted


@dataclass(frozen=True)
class SenderCount:
    sender: str  # Raw From header value
    count: int


@dataclass
class ScanState:
    """Durable progress of the incremental sender scan."""

    processed_ids: list[str] = field(default_factory=list)
    sender_counts: dict[str, int] = field(default_factory=dict)
    headerless_count: int = 0  # processed messages without a From header
    page_cursor: str | None = None
    started: bool = False
    done: bool = False
    version: int = 0  # store revision, 0 until first saved
    _seen: set[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._seen = set(self.processed_ids)

    @property
    def total_processed(self) -> int:
        return len(self.processed_ids)

    def unseen(self, ids: list[str]) -> list[str]:
        """Return ids not processed yet, keeping order and dropping repeats."""
        return [i for i in dict.fromkeys(ids) if i not in self._seen]

    def begin_pass(self) -> None:
        """Rewind to the first page after a completed pass."""
        self.page_cursor = None
        self.done = False

    def commit_page(self, senders: dict[str, str | None], next_cursor: str | None) -> None:
        """Record a fully fetched page.

        ``senders`` maps each new message id to its From header, or None
        when the message has none.
        """
        for message_id, sender in senders.items():
            if message_id in self._seen:
                continue
            self._seen.add(message_id)
            self.processed_ids.append(message_id)
            if sender is None:
                self.headerless_count += 1
            else:
                self.sender_counts[sender] = self.sender_counts.get(sender, 0) + 1

        self.page_cursor = next_cursor
        self.started = True
        self.done = next_cursor is None


@dataclass
class Standings:
    """Current ranking of senders, independent of any scan."""

    top_senders: list[SenderCount]
    total_processed: int
    done: bool = False


@dataclass
class ScanSummary:
    """Result of one scanner invocation."""

    processed_this_call: int
    total_processed: int
    top_senders: list[SenderCount]
    done: bool

    @property
    def status(self) -> str:
        return "complete" if self.done else "partial"
