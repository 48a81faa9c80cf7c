"""Single-flight token refresh with queued request replay.

Any request that fails with a recoverable 401 goes through ``recover()``. The
first one starts a refresh exchange, the ones that arrive while it is pending
join its queue. When the refresh settles the whole queue is either replayed
with the new token (each caller receives its own replay's outcome) or rejected
with the same ``RefreshFailedError``.

All state changes happen between awaits on one event loop, so no lock is
needed around them.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from pydantic import ValidationError

from auth.models import Credential, CredentialStoreError, RefreshFailedError
from auth.token_store import TokenStore
from models import AuthFlow, Failure, Outcome, RequestDescriptor, TransportError

log = logging.getLogger(__name__)


@dataclass
class PendingReplay:
    descriptor: RequestDescriptor
    future: asyncio.Future


class Idle:
    def __repr__(self):
        return "Idle"


@dataclass
class Refreshing:
    queue: list[PendingReplay] = field(default_factory=list)


IDLE = Idle()
RefreshState = Idle | Refreshing


class RefreshCoordinator:
    def __init__(self, transport, token_store: TokenStore, refresh_path: str = "/refresh", session=None):
        self._transport = transport
        self._tokens = token_store
        self._refresh_path = refresh_path
        self._session = session
        self._state: RefreshState = IDLE
        self._tasks: set[asyncio.Task] = set()
        self.refresh_count = 0

    @property
    def refreshing(self) -> bool:
        return isinstance(self._state, Refreshing)

    @property
    def queued(self) -> int:
        return len(self._state.queue) if isinstance(self._state, Refreshing) else 0

    async def recover(self, descriptor: RequestDescriptor) -> Outcome:
        """Wait for a refresh (starting one if needed), then return the replay's outcome.

        Raises RefreshFailedError if the refresh fails.
        """
        pending = PendingReplay(descriptor, asyncio.get_running_loop().create_future())
        state = self._state
        if isinstance(state, Refreshing):
            state.queue.append(pending)
            log.debug("Queued %s %s behind refresh (%d waiting)",
                      descriptor.method, descriptor.path, len(state.queue))
        else:
            # Queue first, then schedule: the refresh can't settle before we are recorded
            self._state = Refreshing([pending])
            self._spawn(self._refresh())
        return await pending.future

    def _spawn(self, coro):
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _take_queue(self) -> list[PendingReplay]:
        state = self._state
        self._state = IDLE
        return state.queue if isinstance(state, Refreshing) else []

    async def _refresh(self):
        self.refresh_count += 1
        log.info("Access token expired, refreshing")
        try:
            credential = await self._exchange()
        except RefreshFailedError as e:
            await self._reject_all(e)
        except Exception as e:
            log.exception("Refresh crashed")
            await self._reject_all(RefreshFailedError(str(e) or type(e).__name__))
        else:
            self._replay_all(credential)

    async def _exchange(self) -> Credential:
        current = self._tokens.credential
        if current is None or not current.refresh_token:
            raise RefreshFailedError("missing_refresh_token")

        outcome = await self._transport.send(RequestDescriptor(
            "POST", self._refresh_path,
            json={"refresh_token": current.refresh_token},
            auth_flow=AuthFlow.REFRESH,
        ))
        latest = self._tokens.credential
        if latest is None:
            raise RefreshFailedError("signed_out")
        if latest is not current:
            # Signed in again while the refresh was pending: the newer credential wins
            log.info("Credential replaced during refresh, dropping refresh result")
            return latest

        if isinstance(outcome, TransportError):
            raise RefreshFailedError(str(outcome))
        if isinstance(outcome, Failure):
            raise RefreshFailedError(_error_code(outcome), outcome.status, outcome.body)

        if not isinstance(outcome.body, dict):
            raise RefreshFailedError("invalid_token_response", outcome.status, outcome.body)
        try:
            credential = current.rotated(outcome.body)
        except ValidationError as e:
            raise RefreshFailedError("invalid_token_response", outcome.status, outcome.body) from e

        try:
            self._tokens.save(credential)
        except CredentialStoreError as e:
            # Session state unknown: fail closed
            raise RefreshFailedError("credential_store_failed") from e
        return credential

    def _replay_all(self, credential: Credential):
        queue = self._take_queue()
        log.info("Token refreshed, replaying %d request(s)", len(queue))
        if self._session is not None:
            self._session.on_refresh_success(credential)
        for pending in queue:
            if pending.future.done():
                continue
            self._spawn(self._replay(pending))

    async def _replay(self, pending: PendingReplay):
        try:
            outcome = await self._transport.send(pending.descriptor.as_replay())
        except Exception as e:
            if not pending.future.done():
                pending.future.set_exception(e)
            return
        if not pending.future.done():
            pending.future.set_result(outcome)

    async def _reject_all(self, error: RefreshFailedError):
        queue = self._take_queue()
        log.warning("Token refresh failed (%s), rejecting %d request(s)", error.error, len(queue))
        for pending in queue:
            if not pending.future.done():
                pending.future.set_exception(error)
        # Already signed out while the refresh was pending: nothing left to clear
        if self._session is not None and self._tokens.credential is not None:
            await self._session.on_refresh_failure(error)


def _error_code(outcome: Failure) -> str:
    body = outcome.body
    if isinstance(body, dict):
        code = body.get("error") or body.get("message")
        if code:
            return str(code)
    return f"refresh_rejected_{outcome.status}"
