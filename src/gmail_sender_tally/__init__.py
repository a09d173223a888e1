"""Gmail Sender Tally - resumable top-sender counts for a Gmail mailbox."""

__version__ = "0.1.0"
