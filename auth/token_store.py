"""Credential storage under a single key in config.json."""

import json
import logging
import os
import tempfile

from pydantic import ValidationError

from auth.models import Credential, CredentialStoreError

log = logging.getLogger(__name__)

_CONFIG_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "config.json")
DEFAULT_STORAGE_KEY = "@wikinerd:token"


class TokenStore:
    def __init__(self, path: str | None = None, key: str = DEFAULT_STORAGE_KEY):
        self._path = path or _CONFIG_PATH
        self._key = key
        self._credential: Credential | None = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def is_authenticated(self) -> bool:
        return self._credential is not None

    @property
    def credential(self) -> Credential | None:
        return self._credential

    def load(self) -> Credential | None:
        raw = self._read().get(self._key)
        credential = None
        if raw:
            try:
                credential = Credential.model_validate_json(raw)
            except ValidationError:
                log.warning("Stored credential under %s is unreadable, ignoring", self._key)
        self._credential = credential
        return credential

    def save(self, credential: Credential):
        data = self._read()
        data[self._key] = credential.model_dump_json()
        self._write(data)
        # Only visible once it is on disk
        self._credential = credential
        log.info("Credential saved")

    def clear(self):
        self._credential = None
        data = self._read()
        if data.pop(self._key, None) is None:
            return
        self._write(data)
        log.info("Credential cleared")

    def _read(self) -> dict:
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (FileNotFoundError, json.JSONDecodeError):
            return {}
        except OSError as e:
            raise CredentialStoreError(f"Cannot read {self._path}: {e}") from e
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict):
        # Temp file + rename: readers see the old document or the new one, never half of it
        directory = os.path.dirname(os.path.abspath(self._path))
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=".config-", suffix=".tmp", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self._path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise CredentialStoreError(f"Cannot write {self._path}: {e}") from e
