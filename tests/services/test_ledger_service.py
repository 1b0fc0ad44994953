"""
End-to-end tests through the LedgerService boundary.

Verifies:
- The reference kiosk scenarios (deposit, withdrawal, transfer)
- Every failure arrives as a typed LedgerResult, never an exception
- Identity precondition
- Balance and listing reads, including the no-session case
"""

import pytest

from kiosk_kernel.domain.dtos import TransactionFilter
from kiosk_kernel.domain.result import ErrorKind, LedgerResult
from kiosk_kernel.domain.values import (
    MAX_MONEY,
    BalanceState,
    OperationKind,
    Recipient,
    ServiceKind,
)
from kiosk_kernel.services.ledger_service import LedgerService
from kiosk_kernel.services.session_service import SessionState


def balances(ledger: LedgerService) -> BalanceState:
    return ledger.get_balances().unwrap()


class TestReferenceScenario:
    """Opening {cash: 100,000, mvola: 50,000} followed by the three operations."""

    def test_deposit_withdraw_transfer(self, active_ledger):
        deposit = active_ledger.deposit("mvola", 20_000, "0341111111")
        assert deposit.ok
        assert deposit.value.fee == 0
        assert balances(active_ledger) == BalanceState(cash=120_000, mvola=30_000)

        withdrawal = active_ledger.withdraw("mvola", 10_000, "0342222222")
        assert withdrawal.ok
        assert withdrawal.value.fee == 300
        assert balances(active_ledger) == BalanceState(cash=110_000, mvola=40_000)

        transfer = active_ledger.transfer("mvola", 5_000, {"name": "X", "phone": "Y"})
        assert transfer.ok
        assert transfer.value.fee == 200
        assert transfer.value.recipient == Recipient("X", "Y")
        assert balances(active_ledger) == BalanceState(cash=115_000, mvola=35_000)

    def test_withdrawal_beyond_cash(self, active_ledger):
        result = active_ledger.withdraw("mvola", 200_000, "0340000000")
        assert not result.ok
        assert result.error.kind == ErrorKind.INSUFFICIENT_FUNDS
        assert result.error.code == "INSUFFICIENT_CASH_BALANCE"
        assert result.error.details["available"] == 100_000
        assert "requested 200,000 Ar" in result.error.message
        assert balances(active_ledger) == BalanceState(cash=100_000, mvola=50_000)
        assert active_ledger.list_transactions().unwrap() == []

    def test_start_twice(self, active_ledger, scenario_opening):
        result = active_ledger.start_session(scenario_opening)
        assert not result.ok
        assert result.error.kind == ErrorKind.SESSION_ALREADY_ACTIVE

    def test_minimum_amount(self, active_ledger):
        rejected = active_ledger.deposit("mvola", 999, "0340000000")
        assert not rejected.ok
        assert rejected.error.kind == ErrorKind.VALIDATION
        assert rejected.error.code == "AMOUNT_BELOW_MINIMUM"

        accepted = active_ledger.deposit("mvola", 1_000, "0340000000")
        assert accepted.ok


class TestSessionBoundary:

    def test_operations_before_start(self, ledger):
        for result in (
            ledger.deposit("mvola", 5_000, "0341111111"),
            ledger.withdraw("mvola", 5_000, "0341111111"),
            ledger.transfer("mvola", 5_000, Recipient("X", "Y")),
            ledger.close_session(),
        ):
            assert not result.ok
            assert result.error.kind == ErrorKind.NO_ACTIVE_SESSION

    def test_operations_after_close(self, active_ledger):
        assert active_ledger.close_session().ok
        result = active_ledger.deposit("mvola", 5_000, "0341111111")
        assert result.error.kind == ErrorKind.NO_ACTIVE_SESSION

    def test_state_transitions(self, ledger, scenario_opening, clock):
        assert ledger.session_state().unwrap() == SessionState.NOT_STARTED
        ledger.start_session(scenario_opening).unwrap()
        assert ledger.session_state().unwrap() == SessionState.ACTIVE
        clock.advance(60)
        ledger.close_session().unwrap()
        assert ledger.session_state().unwrap() == SessionState.CLOSED

    def test_close_keeps_balances_and_history(self, active_ledger):
        active_ledger.deposit("mvola", 20_000, "0341111111").unwrap()
        closed = active_ledger.close_session().unwrap()
        assert not closed.is_active
        assert closed.balances == BalanceState(cash=120_000, mvola=30_000)
        assert closed.transaction_count == 1
        assert balances(active_ledger) == BalanceState(cash=120_000, mvola=30_000)
        assert len(active_ledger.list_transactions().unwrap()) == 1

    def test_new_session_starts_empty_history(self, active_ledger, clock):
        active_ledger.deposit("mvola", 20_000, "0341111111").unwrap()
        active_ledger.close_session().unwrap()
        clock.advance(3600)
        active_ledger.start_session({"cash": 5_000}).unwrap()
        assert active_ledger.list_transactions().unwrap() == []
        assert balances(active_ledger) == BalanceState(cash=5_000)

    def test_invalid_opening_balances(self, ledger):
        result = ledger.start_session({"cash": -1})
        assert not result.ok
        assert result.error.kind == ErrorKind.VALIDATION
        assert ledger.session_state().unwrap() == SessionState.NOT_STARTED

    def test_list_sessions_newest_first(self, ledger, clock):
        first = ledger.start_session({"cash": 1}).unwrap()
        clock.advance(60)
        ledger.close_session().unwrap()
        clock.advance(60)
        second = ledger.start_session({"cash": 2}).unwrap()
        assert [s.id for s in ledger.list_sessions().unwrap()] == [second.id, first.id]

    def test_current_session(self, ledger, clock):
        assert ledger.current_session().unwrap() is None
        started = ledger.start_session({"cash": 1}).unwrap()
        clock.advance(60)
        ledger.close_session().unwrap()
        current = ledger.current_session().unwrap()
        assert current.id == started.id
        assert not current.is_active


class TestIdentity:

    @pytest.mark.parametrize("operator_id", [None, "", "   "])
    def test_missing_identity_rejects_everything(self, session_factory, operator_id):
        ledger = LedgerService(session_factory, operator_id)
        for result in (
            ledger.start_session({"cash": 1}),
            ledger.deposit("mvola", 5_000, "0341111111"),
            ledger.get_balance("cash"),
            ledger.list_transactions(),
        ):
            assert not result.ok
            assert result.error.kind == ErrorKind.VALIDATION
            assert result.error.code == "IDENTITY_REQUIRED"

    def test_operators_are_isolated(self, session_factory, clock):
        alice = LedgerService(session_factory, "alice", clock=clock)
        bob = LedgerService(session_factory, "bob", clock=clock)
        alice.start_session({"cash": 10_000, "mvola": 10_000}).unwrap()
        bob.start_session({"cash": 1}).unwrap()
        alice.deposit("mvola", 5_000, "0341111111").unwrap()
        assert bob.get_balance("cash").unwrap() == 1
        assert bob.list_transactions().unwrap() == []


class TestReads:

    def test_get_balance_without_session_is_zero(self, ledger):
        assert ledger.get_balance("cash").unwrap() == 0
        assert ledger.get_balance("mvola").unwrap() == 0

    def test_get_balance_per_pool(self, active_ledger):
        assert active_ledger.get_balance("cash").unwrap() == 100_000
        assert active_ledger.get_balance(ServiceKind.MVOLA).unwrap() == 50_000
        assert active_ledger.get_balance("orangeMoney").unwrap() == 0

    def test_get_balance_unknown_pool(self, active_ledger):
        result = active_ledger.get_balance("bitcoin")
        assert not result.ok
        assert result.error.code == "UNKNOWN_SERVICE"

    def test_list_newest_first(self, active_ledger, clock):
        first = active_ledger.deposit("mvola", 1_000, "0341111111").unwrap()
        clock.advance(5)
        second = active_ledger.withdraw("mvola", 2_000, "0342222222").unwrap()
        listed = active_ledger.list_transactions().unwrap()
        assert [r.id for r in listed] == [second.id, first.id]

    def test_same_timestamp_ties_break_by_insertion(self, active_ledger):
        ids = [active_ledger.deposit("mvola", 1_000, "034111111").unwrap().id for _ in range(3)]
        listed = active_ledger.list_transactions().unwrap()
        assert [r.id for r in listed] == list(reversed(ids))

    def test_filters(self, active_ledger):
        active_ledger.deposit("mvola", 1_000, "0341111111").unwrap()
        active_ledger.withdraw("airtelMoney", 2_000, "0332222222").unwrap()
        active_ledger.withdraw("mvola", 3_000, "0343333333").unwrap()

        by_service = active_ledger.list_transactions(service="mvola").unwrap()
        assert {r.amount for r in by_service} == {1_000, 3_000}

        by_type = active_ledger.list_transactions(type=OperationKind.WITHDRAWAL).unwrap()
        assert {r.amount for r in by_type} == {2_000, 3_000}

        combined = active_ledger.list_transactions(
            TransactionFilter(service="mvola", type="withdrawal")
        ).unwrap()
        assert [r.amount for r in combined] == [3_000]

        limited = active_ledger.list_transactions(limit=2).unwrap()
        assert [r.amount for r in limited] == [3_000, 2_000]

    def test_search(self, active_ledger):
        active_ledger.transfer("mvola", 1_000, Recipient("Rakoto Jean", "0330001111"), "School fees").unwrap()
        active_ledger.transfer("mvola", 2_000, Recipient("Rabe", "0345559999")).unwrap()
        active_ledger.deposit("mvola", 3_000, "0327778888").unwrap()

        assert [r.amount for r in active_ledger.list_transactions(search="rakoto").unwrap()] == [1_000]
        assert [r.amount for r in active_ledger.list_transactions(search="SCHOOL").unwrap()] == [1_000]
        assert [r.amount for r in active_ledger.list_transactions(search="5559").unwrap()] == [2_000]
        assert [r.amount for r in active_ledger.list_transactions(search="777").unwrap()] == [3_000]
        assert active_ledger.list_transactions(search="100%").unwrap() == []

    def test_invalid_filter(self, active_ledger):
        result = active_ledger.list_transactions(service="paypal")
        assert not result.ok
        assert result.error.code == "INVALID_FILTER"

        result = active_ledger.list_transactions(limit=-1)
        assert result.error.code == "INVALID_FILTER"

    def test_list_previous_session_by_id(self, active_ledger, clock):
        old = active_ledger.current_session().unwrap()
        active_ledger.deposit("mvola", 1_000, "0341111111").unwrap()
        active_ledger.close_session().unwrap()
        clock.advance(60)
        active_ledger.start_session({"cash": 1}).unwrap()
        listed = active_ledger.list_transactions(session_id=old.id).unwrap()
        assert [r.amount for r in listed] == [1_000]

    def test_recent_transactions_default_limit(self, active_ledger):
        for _ in range(7):
            active_ledger.deposit("mvola", 1_000, "0341111111").unwrap()
        assert len(active_ledger.recent_transactions().unwrap()) == 5
        assert len(active_ledger.recent_transactions(2).unwrap()) == 2

    def test_recent_transactions_zero_limit(self, active_ledger):
        active_ledger.deposit("mvola", 1_000, "0341111111").unwrap()
        assert active_ledger.recent_transactions(0).unwrap() == []
        assert active_ledger.report(recent_limit=0).unwrap().recent == ()

    def test_results_are_ledger_results(self, active_ledger):
        assert isinstance(active_ledger.get_balances(), LedgerResult)
        assert isinstance(active_ledger.deposit("mvola", 1, "x"), LedgerResult)


class TestMalformedInput:
    """Wrongly typed input comes back as a VALIDATION result, never an exception."""

    @pytest.mark.parametrize("opening", [None, 5, "100000", ["cash"]])
    def test_opening_not_a_mapping(self, ledger, opening):
        result = ledger.start_session(opening)
        assert not result.ok
        assert result.error.kind == ErrorKind.VALIDATION
        assert result.error.code == "INVALID_FIELD"
        assert ledger.session_state().unwrap() == SessionState.NOT_STARTED

    def test_opening_beyond_storable_range(self, ledger):
        result = ledger.start_session({"cash": 10**20})
        assert not result.ok
        assert result.error.code == "INVALID_AMOUNT"
        assert ledger.session_state().unwrap() == SessionState.NOT_STARTED

    def test_amount_beyond_storable_range(self, active_ledger):
        result = active_ledger.deposit("mvola", MAX_MONEY + 1, "0341111111")
        assert not result.ok
        assert result.error.code == "INVALID_AMOUNT"

    def test_phone_not_text(self, active_ledger):
        result = active_ledger.deposit("mvola", 1_000, 341111111)
        assert not result.ok
        assert result.error.kind == ErrorKind.VALIDATION
        assert result.error.code == "INVALID_FIELD"
        assert result.error.details["field_name"] == "phone number"
        assert active_ledger.list_transactions().unwrap() == []

    @pytest.mark.parametrize(
        "recipient",
        [
            {"name": 7, "phone": "0330000000"},
            {"name": "X", "phone": 330000000},
            Recipient(name="X", phone=330000000),
            ("X", "0330000000"),
        ],
    )
    def test_recipient_not_text(self, active_ledger, recipient):
        result = active_ledger.transfer("mvola", 1_000, recipient)
        assert not result.ok
        assert result.error.code == "INVALID_FIELD"

    def test_recipient_mapping_missing_name(self, active_ledger):
        result = active_ledger.transfer("mvola", 1_000, {"phone": "0330000000"})
        assert not result.ok
        assert result.error.code == "MISSING_FIELD"

    def test_request_and_filter_objects(self, active_ledger):
        assert active_ledger.propose({"kind": "deposit"}).error.code == "INVALID_FIELD"
        assert active_ledger.list_transactions({"limit": 1}).error.code == "INVALID_FIELD"
        assert active_ledger.verify_balances("yesterday").error.code == "INVALID_FIELD"


class TestConservation:
    """The four-pool total never changes; only value moves between pools."""

    def test_sum_invariant_over_mixed_operations(self, ledger):
        ledger.start_session(
            {"cash": 200_000, "mvola": 100_000, "orangeMoney": 80_000, "airtelMoney": 30_000}
        ).unwrap()
        total = balances(ledger).total
        attempts = [
            ledger.deposit("mvola", 40_000, "0341111111"),
            ledger.withdraw("orangeMoney", 25_000, "0321111111"),
            ledger.transfer("airtelMoney", 30_000, Recipient("A", "1")),
            ledger.transfer("airtelMoney", 1_000, Recipient("B", "2")),  # empty
            ledger.withdraw("mvola", 500_000, "0341111111"),  # too large
            ledger.deposit("orangeMoney", 105_000, "0321111111"),
        ]
        assert [r.ok for r in attempts] == [True, True, True, False, False, True]
        after = balances(ledger)
        assert after.total == total
        assert min(after.to_dict().values()) >= 0
        assert ledger.verify_balances().unwrap()
