"""Authentication helpers for Gmail API."""

from __future__ import annotations

from pathlib import Path

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow, InstalledAppFlow
from googleapiclient.discovery import Resource, build
from loguru import logger

from gmail_sender_tally.config import Settings
from gmail_sender_tally.constants import SCOPES
from gmail_sender_tally.errors import NotAuthenticated, RemoteUnavailable
from gmail_sender_tally.gmail_client import get_profile


class TokenStore:
    """Authorized-user token file, rewritten whenever the token changes."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> Credentials | None:
        if not self.path.exists():
            return None
        try:
            return Credentials.from_authorized_user_file(str(self.path), SCOPES)
        except ValueError as exc:
            raise NotAuthenticated(f"Unreadable token file {self.path}: {exc}") from exc

    def save(self, creds: Credentials) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(creds.to_json())
        logger.info(f"Tokens saved to {self.path}")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


def get_credentials(token_store: TokenStore) -> Credentials | None:
    """Return valid stored credentials, refreshing and persisting if expired.

    Returns None when nothing usable is stored.
    """
    creds = token_store.load()
    if creds is None:
        return None

    if creds.expired and creds.refresh_token:
        try:
            creds.refresh(Request())
        except GoogleAuthError as exc:
            raise RemoteUnavailable(f"Token refresh failed: {exc}") from exc
        token_store.save(creds)
        logger.info("Refreshed access token")

    return creds if creds.valid else None


def get_gmail_service(settings: Settings) -> Resource:
    """Return an authenticated Gmail API service object.

    Raises NotAuthenticated when no usable token is stored; run the OAuth
    flow (``/`` in the server or the ``auth`` command) first.
    """
    creds = get_credentials(TokenStore(settings.token_path))
    if creds is None:
        raise NotAuthenticated(
            f"No valid Gmail token at {settings.token_path}. "
            "Authenticate via the server root URL or the 'auth' command."
        )
    return build("gmail", "v1", credentials=creds, cache_discovery=False)


def create_web_flow(settings: Settings) -> Flow:
    """Create the redirect-based OAuth flow used by the HTTP server."""
    return Flow.from_client_config(
        settings.client_config("web"),
        scopes=SCOPES,
        redirect_uri=settings.redirect_uri,
    )


def authorization_url(flow: Flow) -> tuple[str, str]:
    """Return (consent URL, state) requesting an offline refresh token."""
    return flow.authorization_url(access_type="offline", prompt="consent")


def finish_web_flow(flow: Flow, code: str, settings: Settings) -> Credentials:
    """Exchange the authorization code and persist the resulting tokens."""
    flow.fetch_token(code=code)
    creds = flow.credentials
    TokenStore(settings.token_path).save(creds)
    return creds


def run_local_flow(settings: Settings) -> Credentials:
    """Run the loopback browser flow (CLI) and persist the tokens."""
    flow = InstalledAppFlow.from_client_config(settings.client_config("installed"), SCOPES)
    creds = flow.run_local_server(port=0)
    TokenStore(settings.token_path).save(creds)
    return creds


def check_auth(settings: Settings) -> str:
    """Return the authenticated account's email address.

    Raises NotAuthenticated or RemoteUnavailable when Gmail is unreachable
    with the stored credentials.
    """
    service = get_gmail_service(settings)
    return get_profile(service)["emailAddress"]
