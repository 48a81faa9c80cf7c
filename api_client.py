"""Central HTTP client for the WikiNerd API. Bearer auth with single-flight refresh."""

import logging

from auth.classifier import Classification, classify
from auth.models import Credential
from auth.refresh import RefreshCoordinator
from auth.session import SessionController
from auth.token_store import TokenStore
from core import Settings, get_settings
from models import AuthFlow, Outcome, RequestDescriptor, Success
from transport import Transport

log = logging.getLogger(__name__)


class ApiClient:
    def __init__(self, settings: Settings | None = None, token_store: TokenStore | None = None,
                 transport=None):
        self._settings = settings or get_settings()
        self._tokens = token_store or TokenStore(self._settings.storage_path, self._settings.storage_key)
        self._transport = transport or Transport(
            self._settings.server_url, self._tokens, timeout=self._settings.request_timeout,
        )
        self.session = SessionController(self._transport, self._tokens, self._settings.logout_path)
        self._refresher = RefreshCoordinator(
            self._transport, self._tokens, self._settings.refresh_path, session=self.session,
        )

    @property
    def token_store(self) -> TokenStore:
        return self._tokens

    @property
    def refresher(self) -> RefreshCoordinator:
        return self._refresher

    async def close(self):
        close = getattr(self._transport, "close", None)
        if close is not None:
            await close()

    async def request(self, descriptor: RequestDescriptor) -> Outcome:
        """Send through the transport, refreshing and replaying once on an expired token."""
        outcome = await self._transport.send(descriptor)
        if classify(descriptor, outcome) is Classification.RECOVERABLE_401:
            return await self._refresher.recover(descriptor)
        return outcome

    # ── Session ────────────────────────────────────────────

    def restore(self) -> bool:
        return self.session.restore()

    def sign_in(self, tokens: dict | Credential):
        self.session.sign_in(tokens)

    async def sign_out(self):
        await self.session.sign_out()

    def is_signed_in(self) -> bool:
        return self.session.is_signed_in

    async def login(self, email: str, password: str) -> Outcome:
        return await self._authenticate(self._settings.login_path, {"email": email, "password": password})

    async def register(self, name: str, username: str, email: str, password: str,
                       password_confirmation: str) -> Outcome:
        return await self._authenticate(self._settings.register_path, {
            "name": name,
            "username": username,
            "email": email,
            "password": password,
            "password_confirmation": password_confirmation,
        })

    async def _authenticate(self, path: str, payload: dict) -> Outcome:
        outcome = await self._transport.send(
            RequestDescriptor("POST", path, json=payload, auth_flow=AuthFlow.LOGIN)
        )
        if isinstance(outcome, Success) and isinstance(outcome.body, dict):
            self.sign_in(outcome.body)
        else:
            log.error("Auth %s failed: %s", path, outcome)
        return outcome

    async def update_user_profile(self) -> dict | None:
        outcome = await self.get(self._settings.profile_path)
        if isinstance(outcome, Success) and isinstance(outcome.body, dict):
            self.session.set_user(outcome.body)
            return outcome.body
        return None

    # ── Verbs ──────────────────────────────────────────────

    async def get(self, path: str, params: dict | None = None) -> Outcome:
        return await self.request(RequestDescriptor("GET", path, params=_pairs(params)))

    async def post(self, path: str, json=None) -> Outcome:
        return await self.request(RequestDescriptor("POST", path, json=json))

    async def put(self, path: str, json=None) -> Outcome:
        return await self.request(RequestDescriptor("PUT", path, json=json))

    async def delete(self, path: str) -> Outcome:
        return await self.request(RequestDescriptor("DELETE", path))


def _pairs(params: dict | None) -> tuple[tuple[str, str], ...] | None:
    """Query pairs for aiohttp. None values are left out, lists repeat the key."""
    pairs = []
    for key, value in (params or {}).items():
        values = value if isinstance(value, (list, tuple)) else [value]
        pairs.extend((key, _query_value(v)) for v in values if v is not None)
    return tuple(pairs) or None


def _query_value(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
