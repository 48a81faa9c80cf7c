"""Single HTTP exchange over aiohttp. Attaches the current bearer token."""

import asyncio
import json
import logging

import aiohttp

from auth.token_store import TokenStore
from models import Failure, Outcome, RequestDescriptor, Success, TransportError

log = logging.getLogger(__name__)


class Transport:
    def __init__(self, server_url: str, token_store: TokenStore, timeout: float = 30.0):
        self._base = server_url.rstrip("/")
        self._tokens = token_store
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    async def _ensure_session(self):
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self._base}/{path.lstrip('/')}"

    def headers_for(self, descriptor: RequestDescriptor) -> dict[str, str]:
        headers = dict(descriptor.headers)
        credential = self._tokens.credential
        # Login has no token yet; refresh and logout carry the refresh token in the body
        if credential and descriptor.auth_flow is None:
            headers["Authorization"] = f"Bearer {credential.access_token}"
        return headers

    async def send(self, descriptor: RequestDescriptor) -> Outcome:
        await self._ensure_session()
        method, path = descriptor.method.upper(), descriptor.path
        try:
            async with self._session.request(
                method,
                self.url_for(path),
                json=descriptor.json,
                params=list(descriptor.params) if descriptor.params else None,
                headers=self.headers_for(descriptor),
            ) as resp:
                body = await _read_body(resp)
                if resp.status >= 400:
                    log.error("API %s %s → %d: %s", method, path, resp.status, str(body)[:200])
                    return Failure(resp.status, body)
                return Success(resp.status, body)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.error("API %s %s error: %s", method, path, e)
            return TransportError(e)


async def _read_body(resp: aiohttp.ClientResponse):
    raw = await resp.read()
    if not raw:
        return None
    charset = resp.charset or "utf-8"
    if resp.content_type == "application/json":
        try:
            return json.loads(raw.decode(charset))
        except (LookupError, ValueError):
            pass
    try:
        return raw.decode(charset)
    except (LookupError, UnicodeDecodeError):
        # Binary payload (images, archives...)
        return raw
