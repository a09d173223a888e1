"""Constants for Gmail Sender Tally."""

from pathlib import Path

# --- Config paths ---
DEFAULT_DATA_DIR = Path.home() / ".gmail-sender-tally"
TOKEN_FILENAME = "token.json"
STATE_DB_FILENAME = "state.db"

# --- Gmail API ---
SCOPES = ["https://www.googleapis.com/auth/gmail.modify"]
BATCH_SIZE = 50  # sub-requests per BatchHttpRequest
PAGE_SIZE = 500  # message ids per list page (Gmail maximum)
FROM_HEADER = "From"
SUBJECT_HEADER = "Subject"
SEARCH_HEADERS = [SUBJECT_HEADER, FROM_HEADER]

# --- Scanning ---
DEFAULT_BATCH_CAP = 1000  # new messages per scan invocation
TOP_SENDERS_LIMIT = 5

# --- Search endpoint ---
DEFAULT_SEARCH_RESULTS = 10
UNKNOWN_SENDER = "Unknown"
NO_SUBJECT = "No Subject"

# --- Server ---
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000
DEFAULT_REDIRECT_URI = f"http://localhost:{DEFAULT_PORT}/oauth2callback"
MAX_PENDING_OAUTH_FLOWS = 16  # consent attempts awaiting /oauth2callback
