"""Export the sender tally to CSV or JSON."""

import csv
import json

from .models import ScanState
from .scanner import rank_senders


def export_tally(state: ScanState, format: str, output_path: str) -> int:
    """Write every sender and its count, highest first, to a file.

    Args:
        state: The scan state to export.
        format: Output format, either 'csv' or 'json'.
        output_path: Path to write the output file.

    Returns the number of senders written.
    """
    ranked = rank_senders(state.sender_counts, limit=None)

    if format == "csv":
        with open(output_path, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=["rank", "sender", "count"])
            writer.writeheader()
            for rank, entry in enumerate(ranked, start=1):
                writer.writerow({"rank": rank, "sender": entry.sender, "count": entry.count})
    elif format == "json":
        payload = {
            "totalProcessed": state.total_processed,
            "done": state.done,
            "senders": [{"sender": e.sender, "count": e.count} for e in ranked],
        }
        with open(output_path, "w") as f:
            json.dump(payload, f, indent=2)
    else:
        raise ValueError(f"Unsupported export format: {format}")

    return len(ranked)
