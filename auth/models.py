"""Credential model and auth error types."""

from pydantic import BaseModel, ConfigDict


class AuthError(Exception):
    pass


class CredentialStoreError(AuthError):
    """Persistent credential storage could not be read or written."""


class RefreshFailedError(AuthError):
    """The refresh exchange failed. Every caller queued behind it gets the same instance."""

    def __init__(self, error: str, status: int | None = None, body=None):
        super().__init__(error)
        self.error = error
        self.status = status
        self.body = body


class Credential(BaseModel):
    """Token response from /login, /register or /refresh."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str
    refresh_token: str | None = None
    token_type: str = "bearer"
    expires_in: int | None = None

    def rotated(self, response: dict) -> "Credential":
        """New credential from a refresh response, keeping our refresh token if none was issued."""
        data = dict(response)
        if not data.get("refresh_token"):
            data["refresh_token"] = self.refresh_token
        return Credential.model_validate(data)
