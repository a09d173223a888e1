"""Tests for tally export."""

import csv
import json

import pytest

from gmail_sender_tally.export import export_tally
from gmail_sender_tally.models import ScanState


@pytest.fixture
def state() -> ScanState:
    return ScanState(
        processed_ids=[str(i) for i in range(9)],
        sender_counts={"a@example.com": 2, "News <news@example.com>": 5, "c@example.com": 2},
        page_cursor="next",
        started=True,
    )


def test_export_csv_ranks_all_senders(state, tmp_path):
    out = tmp_path / "tally.csv"
    assert export_tally(state, format="csv", output_path=str(out)) == 3

    with open(out, newline="") as f:
        rows = list(csv.DictReader(f))

    assert [(r["rank"], r["sender"], r["count"]) for r in rows] == [
        ("1", "News <news@example.com>", "5"),
        ("2", "a@example.com", "2"),
        ("3", "c@example.com", "2"),
    ]


def test_export_json(state, tmp_path):
    out = tmp_path / "tally.json"
    export_tally(state, format="json", output_path=str(out))

    data = json.loads(out.read_text())
    assert data["totalProcessed"] == 9
    assert data["done"] is False
    assert data["senders"][0] == {"sender": "News <news@example.com>", "count": 5}


def test_export_unknown_format(state, tmp_path):
    with pytest.raises(ValueError):
        export_tally(state, format="xml", output_path=str(tmp_path / "x"))
