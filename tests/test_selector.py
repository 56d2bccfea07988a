"""
Tests for random member selection.
"""

import random

import pytest
from kazoo.exceptions import ConnectionLoss, NoNodeError

from serverset.commands.selector import Selector
from serverset.config import SelectConfig
from serverset.core.member import Endpoint
from serverset.errors import (
    EmptySetError,
    MissingPortError,
    SelectionExhaustedError,
    UninitializedSetError,
)

from conftest import FakeSession, member_payload

WEB = "/services/web"


def make_selector(session, seed=42, max_attempts=4):
    sleeps = []
    selector = Selector(
        session,
        config=SelectConfig(max_attempts=max_attempts, backoff_initial=0.01, backoff_max=0.02),
        rng=random.Random(seed),
        sleep=sleeps.append,
    )
    return selector, sleeps


class TestSelect:
    """Tests for endpoint resolution."""

    def test_returns_service_endpoint_of_a_member(self, serverset_session):
        selector, _ = make_selector(serverset_session)
        endpoint = selector.select(WEB)
        assert str(endpoint) in ("10.0.0.1:9090", "10.0.0.2:9091")

    def test_returns_named_port(self, serverset_session):
        selector, _ = make_selector(serverset_session)
        endpoint = selector.select(WEB, "http")
        assert endpoint in (Endpoint("10.0.0.1", 8080), Endpoint("10.0.0.2", 8081))

    def test_seeded_selection_is_reproducible(self, serverset_session):
        first = [make_selector(serverset_session, seed=s)[0].select(WEB) for s in range(10)]
        second = [make_selector(serverset_session, seed=s)[0].select(WEB) for s in range(10)]
        assert first == second

    def test_selection_covers_all_members(self, serverset_session):
        """Uniform choice should reach every member given enough draws."""
        selector, _ = make_selector(serverset_session, seed=1)
        seen = {str(selector.select(WEB)) for _ in range(50)}
        assert seen == {"10.0.0.1:9090", "10.0.0.2:9091"}

    def test_missing_port_is_fatal(self, serverset_session):
        """An absent named port raises instead of returning a default endpoint."""
        selector, sleeps = make_selector(serverset_session)
        with pytest.raises(MissingPortError, match="admin"):
            selector.select(WEB, "admin")
        assert sleeps == []

    def test_uninitialized_set(self, fake_session):
        selector, _ = make_selector(fake_session)
        with pytest.raises(UninitializedSetError):
            selector.select("/services/missing")

    def test_empty_set(self):
        session = FakeSession({"/services/empty": b""})
        selector, _ = make_selector(session)
        with pytest.raises(EmptySetError):
            selector.select("/services/empty")

    def test_listing_error_propagates(self, serverset_session):
        serverset_session.children_error = ConnectionLoss()
        selector, _ = make_selector(serverset_session)
        with pytest.raises(ConnectionLoss):
            selector.select(WEB)


class TestSelectRetry:
    """Tests for races between listing and reading."""

    def test_retries_vanished_member(self):
        """A member that vanished after listing is retried, not fatal."""
        session = FakeSession({
            f"{WEB}/a": member_payload("10.0.0.1", 1),
            f"{WEB}/b": member_payload("10.0.0.2", 2),
        })
        session.get_errors[f"{WEB}/a"] = NoNodeError()
        selector, _ = make_selector(session, max_attempts=20)

        for _ in range(10):
            assert selector.select(WEB) == Endpoint("10.0.0.2", 2)

    def test_retries_malformed_member(self):
        session = FakeSession({
            f"{WEB}/a": b"garbage",
            f"{WEB}/b": member_payload("10.0.0.2", 2),
        })
        selector, _ = make_selector(session, max_attempts=20)
        assert selector.select(WEB) == Endpoint("10.0.0.2", 2)

    def test_retry_is_bounded(self):
        """Sustained churn ends in a fatal error after max_attempts."""
        session = FakeSession({f"{WEB}/a": member_payload("10.0.0.1", 1)})
        session.get_errors[f"{WEB}/a"] = NoNodeError()
        selector, sleeps = make_selector(session, max_attempts=4)

        with pytest.raises(SelectionExhaustedError):
            selector.select(WEB)

        assert session.get_calls == [f"{WEB}/a"] * 4
        assert sleeps == [0.01, 0.02, 0.02]

    def test_other_read_errors_propagate(self):
        session = FakeSession({f"{WEB}/a": member_payload("10.0.0.1", 1)})
        session.get_errors[f"{WEB}/a"] = ConnectionLoss()
        selector, _ = make_selector(session)
        with pytest.raises(ConnectionLoss):
            selector.select(WEB)


class TestSelectConfig:
    """Tests for the backoff schedule."""

    def test_backoff_doubles_and_caps(self):
        config = SelectConfig(backoff_initial=0.1, backoff_max=0.5)
        assert [config.backoff(n) for n in range(1, 6)] == [0.1, 0.2, 0.4, 0.5, 0.5]
