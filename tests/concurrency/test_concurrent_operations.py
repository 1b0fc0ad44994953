"""
Concurrency tests for the ledger.

Verifies:
- A writer holding a stale session row is refused (optimistic version)
- Two processes racing withdrawals cannot both pass a stale solvency check
- Racing session starts leave exactly one active session
- Threads sharing one LedgerService are serialized

File-backed SQLite is used so that separate connections really see each
other's commits.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from kiosk_kernel.db.engine import build_engine, create_tables
from kiosk_kernel.domain.dtos import TransactionRequest
from kiosk_kernel.domain.result import ErrorKind
from kiosk_kernel.domain.values import OperationKind, ServiceKind
from kiosk_kernel.exceptions import OptimisticLockError
from kiosk_kernel.models.transaction import KioskTransaction
from kiosk_kernel.selectors.session_selector import SessionSelector
from kiosk_kernel.services.ledger_service import LedgerService
from kiosk_kernel.services.session_service import SessionService
from kiosk_kernel.services.transaction_ledger import TransactionLedger

pytestmark = pytest.mark.slow


@pytest.fixture
def file_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'kiosk.db'}", timeout_seconds=10)
    create_tables(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


def withdrawal(amount: int) -> TransactionRequest:
    return TransactionRequest(
        kind=OperationKind.WITHDRAWAL,
        service=ServiceKind.MVOLA,
        amount=amount,
        phone_number="0341111111",
    )


class TestOptimisticVersion:

    def test_stale_row_is_refused(self, file_factory, clock, operator_id):
        ledger = LedgerService(file_factory, operator_id, clock=clock)
        ledger.start_session({"cash": 100_000, "mvola": 0}).unwrap()

        stale = file_factory()
        try:
            row = SessionService(stale).require_active(operator_id)
            assert row.cash == 100_000

            ledger.withdraw("mvola", 60_000, "0341111111").unwrap()

            session_id = str(row.id)
            with pytest.raises(OptimisticLockError) as exc_info:
                TransactionLedger(stale, clock=clock).propose(operator_id, withdrawal(60_000))
            assert exc_info.value.code == "OPTIMISTIC_LOCK_CONFLICT"
            assert exc_info.value.session_id == session_id
        finally:
            stale.rollback()
            stale.close()

        assert ledger.get_balance("cash").unwrap() == 40_000
        assert len(ledger.list_transactions().unwrap()) == 1


class TestConflictRetry:

    def test_conflict_is_retried_against_fresh_balances(
        self, file_factory, clock, operator_id, captured_logs
    ):
        other = LedgerService(file_factory, operator_id, clock=clock)
        other.start_session({"cash": 100_000}).unwrap()
        sessions = []

        def stale_first():
            # First attempt: a session that read the row before the other
            # kiosk committed.  Later attempts get a fresh session.
            session = file_factory()
            if not sessions:
                SessionService(session).require_active(operator_id)
                other.withdraw("mvola", 60_000, "0341111111").unwrap()
            sessions.append(session)
            return session

        result = LedgerService(stale_first, operator_id, clock=clock).withdraw(
            "mvola", 60_000, "0342222222"
        )

        assert len(sessions) == 2
        assert not result.ok
        assert result.error.kind == ErrorKind.INSUFFICIENT_FUNDS
        assert result.error.details["available"] == 40_000
        messages = [r["message"] for r in captured_logs()]
        assert "session_version_conflict" in messages
        assert other.get_balance("cash").unwrap() == 40_000
        assert len(other.list_transactions().unwrap()) == 1


class TestRacingWriters:

    def test_racing_withdrawals_one_wins(self, file_factory, clock, operator_id):
        LedgerService(file_factory, operator_id, clock=clock).start_session(
            {"cash": 100_000}
        ).unwrap()

        # Separate service instances: no shared in-process lock.
        kiosks = [LedgerService(file_factory, operator_id, clock=clock) for _ in range(2)]
        barrier = Barrier(2)

        def attempt(kiosk):
            barrier.wait()
            return kiosk.withdraw("mvola", 60_000, "0341111111")

        with ThreadPoolExecutor(max_workers=2) as pool:
            results = list(pool.map(attempt, kiosks))

        assert sorted(r.ok for r in results) == [False, True]
        loser = next(r for r in results if not r.ok)
        assert loser.error.kind == ErrorKind.INSUFFICIENT_FUNDS

        ledger = kiosks[0]
        assert ledger.get_balance("cash").unwrap() == 40_000
        assert ledger.verify_balances().unwrap()

    def test_racing_starts_one_active(self, file_factory, clock, operator_id):
        kiosks = [LedgerService(file_factory, operator_id, clock=clock) for _ in range(4)]
        barrier = Barrier(4)

        def attempt(kiosk):
            barrier.wait()
            return kiosk.start_session({"cash": 1_000})

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(attempt, kiosks))

        assert sum(r.ok for r in results) == 1
        assert all(
            r.error.kind == ErrorKind.SESSION_ALREADY_ACTIVE for r in results if not r.ok
        )
        with file_factory() as session:
            assert SessionSelector(session).count_active(operator_id) == 1


class TestSharedService:

    def test_threads_share_one_float(self, session_factory, clock, operator_id):
        ledger = LedgerService(session_factory, operator_id, clock=clock)
        ledger.start_session({"cash": 100_000}).unwrap()

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(
                pool.map(lambda _: ledger.withdraw("mvola", 15_000, "0341111111"), range(10))
            )

        assert sum(r.ok for r in results) == 6
        assert ledger.get_balance("cash").unwrap() == 10_000
        assert ledger.get_balance("mvola").unwrap() == 90_000
        seqs = sorted(r.seq for r in ledger.list_transactions().unwrap())
        assert seqs == list(range(1, 7))

        with session_factory() as session:
            rows = session.execute(
                select(func.count()).select_from(KioskTransaction)
            ).scalar_one()
        assert rows == 6
