"""
Tests for the session lifecycle.

Verifies:
- NotStarted -> Active -> Closed state machine
- Opening balances seed the live float
- Start while active is rejected (service check and unique index)
- Close keeps balances and history
"""

import pytest
from sqlalchemy import select

from kiosk_kernel.domain.values import MAX_MONEY, BalanceState
from kiosk_kernel.exceptions import (
    InvalidAmountError,
    InvalidFieldError,
    NoActiveSessionError,
    SessionAlreadyActiveError,
)
from kiosk_kernel.models.kiosk_session import KioskSession
from kiosk_kernel.services.session_service import (
    SessionService,
    SessionState,
    parse_opening_balances,
)


@pytest.fixture
def sessions(session, clock):
    return SessionService(session, clock)


class TestParseOpeningBalances:

    def test_wire_keys(self):
        state = parse_opening_balances(
            {"cash": 100_000, "mvola": 50_000, "orangeMoney": 1, "airtelMoney": 2}
        )
        assert state == BalanceState(cash=100_000, mvola=50_000, orange_money=1, airtel_money=2)

    def test_missing_pools_default_to_zero(self):
        assert parse_opening_balances({"cash": 5}) == BalanceState(cash=5)

    def test_negative_rejected(self):
        with pytest.raises(InvalidAmountError) as exc_info:
            parse_opening_balances({"cash": 100, "mvola": -1})
        assert exc_info.value.field_name == "opening mvola"

    def test_non_numeric_rejected(self):
        with pytest.raises(InvalidAmountError):
            parse_opening_balances({"cash": "100"})

    def test_balance_state_passthrough(self):
        state = BalanceState(cash=7)
        assert parse_opening_balances(state) is state

    @pytest.mark.parametrize("opening", [None, 100_000, "cash=100000", [("cash", 1)]])
    def test_non_mapping_rejected(self, opening):
        with pytest.raises(InvalidFieldError) as exc_info:
            parse_opening_balances(opening)
        assert exc_info.value.field_name == "opening balances"

    def test_pool_above_bigint_rejected(self):
        with pytest.raises(InvalidAmountError) as exc_info:
            parse_opening_balances({"cash": MAX_MONEY + 1})
        assert exc_info.value.field_name == "opening cash"

    def test_total_above_bigint_rejected(self):
        with pytest.raises(InvalidAmountError) as exc_info:
            parse_opening_balances({"cash": MAX_MONEY, "mvola": 1})
        assert exc_info.value.field_name == "opening total"

    def test_total_at_bigint_accepted(self):
        state = parse_opening_balances({"cash": MAX_MONEY - 1, "mvola": 1})
        assert state.total == MAX_MONEY


class TestLifecycle:

    def test_initial_state_is_not_started(self, sessions, operator_id):
        assert sessions.state(operator_id) == SessionState.NOT_STARTED

    def test_start_seeds_live_balances(self, sessions, operator_id, scenario_opening, clock):
        info = sessions.start(operator_id, scenario_opening)
        assert info.is_active
        assert info.opening_balances == scenario_opening
        assert info.balances == scenario_opening
        assert info.transaction_count == 0
        assert info.opened_at == clock.now()
        assert sessions.state(operator_id) == SessionState.ACTIVE

    def test_start_twice_rejected(self, sessions, operator_id, scenario_opening):
        first = sessions.start(operator_id, scenario_opening)
        with pytest.raises(SessionAlreadyActiveError) as exc_info:
            sessions.start(operator_id, scenario_opening)
        assert exc_info.value.session_id == str(first.id)

    def test_close_keeps_balances(self, sessions, operator_id, scenario_opening, clock):
        sessions.start(operator_id, scenario_opening)
        clock.advance(3600)
        info = sessions.close(operator_id)
        assert not info.is_active
        assert info.closed_at == clock.now()
        assert info.balances == scenario_opening
        assert sessions.state(operator_id) == SessionState.CLOSED

    def test_close_without_session_rejected(self, sessions, operator_id):
        with pytest.raises(NoActiveSessionError):
            sessions.close(operator_id)

    def test_restart_after_close(self, sessions, operator_id, scenario_opening, clock):
        sessions.start(operator_id, scenario_opening)
        sessions.close(operator_id)
        clock.advance(60)
        info = sessions.start(operator_id, BalanceState(cash=1))
        assert info.is_active
        assert info.balances == BalanceState(cash=1)

    def test_operators_are_independent(self, sessions, scenario_opening):
        sessions.start("operator-a", scenario_opening)
        info = sessions.start("operator-b", scenario_opening)
        assert info.operator_id == "operator-b"

    def test_require_active(self, sessions, operator_id, scenario_opening):
        with pytest.raises(NoActiveSessionError):
            sessions.require_active(operator_id)
        started = sessions.start(operator_id, scenario_opening)
        assert sessions.require_active(operator_id).id == started.id


class TestActiveSessionIndex:
    """The database refuses a second active row even if the service is bypassed."""

    def test_unique_active_per_operator(self, session, operator_id, scenario_opening, clock):
        from sqlalchemy.exc import IntegrityError

        session.add(KioskSession.open(operator_id, clock.now(), scenario_opening))
        session.flush()
        session.add(KioskSession.open(operator_id, clock.now(), scenario_opening))
        with pytest.raises(IntegrityError):
            session.flush()

    def test_many_closed_sessions_allowed(self, sessions, session, operator_id, scenario_opening, clock):
        for _ in range(3):
            sessions.start(operator_id, scenario_opening)
            clock.advance(60)
            sessions.close(operator_id)
        rows = session.execute(
            select(KioskSession).where(KioskSession.operator_id == operator_id)
        ).scalars().all()
        assert len(rows) == 3
        assert sum(1 for row in rows if row.is_active) == 0
