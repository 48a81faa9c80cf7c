"""Request descriptors and exchange outcomes shared by the transport and auth layers."""

import enum
from dataclasses import dataclass, field, replace
from typing import Any, Union


class AuthFlow(enum.Enum):
    LOGIN = "login"
    REFRESH = "refresh"
    LOGOUT = "logout"


@dataclass(frozen=True)
class RequestDescriptor:
    method: str
    path: str
    headers: tuple[tuple[str, str], ...] = ()
    json: Any = None
    params: tuple[tuple[str, str], ...] | None = None
    auth_flow: AuthFlow | None = None
    replayed: bool = False

    @property
    def is_auth_flow(self) -> bool:
        return self.auth_flow is not None

    def as_replay(self) -> "RequestDescriptor":
        """Copy marked as already replayed once. The original is left untouched."""
        return replace(self, replayed=True)


@dataclass(frozen=True)
class Success:
    status: int
    body: Any = None


@dataclass(frozen=True)
class Failure:
    status: int
    body: Any = None


@dataclass(frozen=True)
class TransportError:
    # No response was obtained (connection refused, DNS, timeout...)
    error: BaseException = field(compare=False)

    def __str__(self) -> str:
        return f"{type(self.error).__name__}: {self.error}"


Outcome = Union[Success, Failure, TransportError]
