"""Signed-in state: sign-in, sign-out, reaction to refresh results."""

import logging
from typing import Callable

from auth.models import AuthError, Credential, CredentialStoreError
from auth.token_store import TokenStore
from models import AuthFlow, RequestDescriptor

log = logging.getLogger(__name__)


class SessionController:
    def __init__(self, transport, token_store: TokenStore, logout_path: str = "/logout"):
        self._transport = transport
        self._tokens = token_store
        self._logout_path = logout_path
        self._loading = True
        self._signed_in = False
        self._user: dict | None = None
        self._listeners: list[Callable[[bool], None]] = []

    @property
    def is_signed_in(self) -> bool:
        return self._signed_in

    @property
    def loading(self) -> bool:
        """True until restore() has read the stored credential."""
        return self._loading

    @property
    def credential(self) -> Credential | None:
        return self._tokens.credential

    @property
    def user(self) -> dict | None:
        return self._user

    def set_user(self, user: dict | None):
        self._user = user

    def add_listener(self, callback: Callable[[bool], None]):
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[bool], None]):
        if callback in self._listeners:
            self._listeners.remove(callback)

    def restore(self) -> bool:
        try:
            credential = self._tokens.load()
        except CredentialStoreError:
            log.exception("Failed to read stored credential, starting signed out")
            credential = None
        self._loading = False
        self._set_signed_in(credential is not None)
        return self._signed_in

    def sign_in(self, tokens: dict | Credential):
        credential = tokens if isinstance(tokens, Credential) else Credential.model_validate(tokens)
        self._tokens.save(credential)
        self._loading = False
        self._set_signed_in(True)

    async def sign_out(self):
        """Always succeeds locally. The server logout is best effort."""
        credential = self._tokens.credential
        try:
            self._tokens.clear()
        except CredentialStoreError:
            log.exception("Failed to clear stored credential")
        self._user = None
        self._set_signed_in(False)

        body = {"refresh_token": credential.refresh_token} if credential and credential.refresh_token else None
        try:
            outcome = await self._transport.send(
                RequestDescriptor("POST", self._logout_path, json=body, auth_flow=AuthFlow.LOGOUT)
            )
            log.debug("Logout exchange: %s", outcome)
        except Exception:
            log.debug("Logout exchange failed", exc_info=True)

    def on_refresh_success(self, credential: Credential):
        """The coordinator has already saved the credential. The store is the session's credential."""
        log.debug("Session credential rotated (%s)", credential.token_type)

    async def on_refresh_failure(self, error: AuthError):
        log.warning("Signing out after failed refresh: %s", error)
        await self.sign_out()

    def _set_signed_in(self, value: bool):
        if value == self._signed_in:
            return
        self._signed_in = value
        log.info("Signed %s", "in" if value else "out")
        for callback in list(self._listeners):
            try:
                callback(value)
            except Exception:
                log.exception("Session listener failed")
