"""Tests for classify — which outcomes are eligible for refresh."""

import pytest

from auth.classifier import Classification, classify
from models import AuthFlow, Failure, RequestDescriptor, Success, TransportError

GET = RequestDescriptor("GET", "/users/movie")


def test_plain_401_is_recoverable():
    assert classify(GET, Failure(401)) is Classification.RECOVERABLE_401


def test_replayed_401_is_final():
    assert classify(GET.as_replay(), Failure(401)) is Classification.OTHER


@pytest.mark.parametrize("flow", list(AuthFlow))
def test_auth_flow_401_never_recoverable(flow):
    descriptor = RequestDescriptor("POST", "/x", auth_flow=flow)
    assert classify(descriptor, Failure(401)) is Classification.OTHER


@pytest.mark.parametrize("outcome", [
    Success(200, {}),
    Success(204),
    Failure(403),
    Failure(404),
    Failure(500),
    TransportError(OSError("unreachable")),
])
def test_everything_else_is_other(outcome):
    assert classify(GET, outcome) is Classification.OTHER


def test_as_replay_does_not_mutate_original():
    replay = GET.as_replay()
    assert replay.replayed
    assert not GET.replayed
    assert replay.path == GET.path
