"""Decides whether a finished exchange is an expired access token worth refreshing."""

import enum

from models import Failure, Outcome, RequestDescriptor

UNAUTHORIZED = 401


class Classification(enum.Enum):
    RECOVERABLE_401 = "recoverable_401"
    OTHER = "other"


def classify(descriptor: RequestDescriptor, outcome: Outcome) -> Classification:
    """RECOVERABLE_401 only for a 401 on a regular request that was not replayed yet.

    Auth-flow exchanges (login, refresh, logout) never qualify, otherwise a
    failing refresh would try to refresh itself. A replayed request that
    still gets 401 is final.
    """
    if (
        isinstance(outcome, Failure)
        and outcome.status == UNAUTHORIZED
        and not descriptor.is_auth_flow
        and not descriptor.replayed
    ):
        return Classification.RECOVERABLE_401
    return Classification.OTHER
