"""
Unit tests for SchedulingService transaction handling.

The unit of work is exercised with mocked sessions:
- commit on success, rollback and close on every failure
- whole-transaction retries on lost compare-and-set writes
- persistence errors surfaced as StoreUnavailableError
"""

from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError

from barbershop.core.exceptions import (
    ConcurrentUpdateError,
    SlotUnavailableError,
    StoreUnavailableError,
)
from barbershop.services.scheduling_service import SchedulingService


@pytest.fixture
def sessions():
    created = []

    def factory():
        session = Mock(name=f"session{len(created)}")
        created.append(session)
        return session

    factory.created = created
    return factory


@pytest.mark.unit
@pytest.mark.services
class TestUnitOfWork:
    def test_success_commits_once(self, sessions):
        service = SchedulingService(sessions, max_attempts=3)

        assert service._run("op", lambda repos: "done") == "done"
        assert len(sessions.created) == 1
        sessions.created[0].commit.assert_called_once()
        sessions.created[0].close.assert_called_once()

    def test_conflict_is_retried_with_a_fresh_session(self, sessions):
        service = SchedulingService(sessions, max_attempts=3)
        outcomes = [ConcurrentUpdateError("lost"), ConcurrentUpdateError("lost"), "ok"]

        def work(repos):
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        assert service._run("op", work, retry_on_conflict=True) == "ok"
        assert len(sessions.created) == 3
        for session in sessions.created[:2]:
            session.rollback.assert_called_once()
            session.commit.assert_not_called()
        sessions.created[2].commit.assert_called_once()

    def test_conflicts_exhausting_attempts_surface_as_store_error(self, sessions):
        service = SchedulingService(sessions, max_attempts=2)

        def work(repos):
            raise ConcurrentUpdateError("lost")

        with pytest.raises(StoreUnavailableError, match="after 2 attempts"):
            service._run("complete_appointment", work, retry_on_conflict=True)
        assert len(sessions.created) == 2

    def test_conflict_without_retry_fails_after_one_attempt(self, sessions):
        service = SchedulingService(sessions, max_attempts=5)

        def work(repos):
            raise ConcurrentUpdateError("lost")

        with pytest.raises(StoreUnavailableError):
            service._run("op", work)
        assert len(sessions.created) == 1

    def test_database_error_becomes_store_unavailable(self, sessions):
        service = SchedulingService(sessions, max_attempts=5)

        def work(repos):
            raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

        with pytest.raises(StoreUnavailableError):
            service._run("op", work, retry_on_conflict=True)
        assert len(sessions.created) == 1
        sessions.created[0].rollback.assert_called_once()
        sessions.created[0].close.assert_called_once()

    def test_domain_errors_roll_back_and_propagate(self, sessions):
        service = SchedulingService(sessions, max_attempts=5)

        def work(repos):
            raise SlotUnavailableError()

        with pytest.raises(SlotUnavailableError):
            service._run("op", work, retry_on_conflict=True)
        assert len(sessions.created) == 1
        sessions.created[0].rollback.assert_called_once()
        sessions.created[0].commit.assert_not_called()
