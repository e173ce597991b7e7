"""
Per-entity serialization and bounded retry for ledger writes.

Every write path takes the in-process locks for the products, parties,
cash accounts and invoice sequences it touches, then row-locks the same
entities inside its database transaction. The mutex closes the
check-then-act window on backends without row locks (SQLite); the
``FOR UPDATE`` closes it across processes on PostgreSQL.
"""
import logging
import threading
import time
from contextlib import contextmanager
from functools import wraps

from sqlalchemy.exc import DBAPIError

from stockledger.exceptions import LedgerError, ConcurrencyConflict, CommitFailed

logger = logging.getLogger(__name__)

# PostgreSQL serialization_failure / deadlock_detected
SERIALIZATION_SQLSTATES = {'40001', '40P01'}

DEFAULT_RETRIES = 3


def product_key(product_id) -> str:
    return f'product:{int(product_id)}'


def customer_key(customer_id) -> str:
    return f'customer:{int(customer_id)}'


def supplier_key(supplier_id) -> str:
    return f'supplier:{int(supplier_id)}'


def account_key(account_code: str) -> str:
    return f'account:{account_code}'


def sequence_key(name: str) -> str:
    return f'sequence:{name}'


class EntityLocks:
    """Registry of one mutex per entity key."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, keys):
        """Acquire the locks for ``keys`` in sorted order (no lock cycles)."""
        acquired = []
        try:
            for key in sorted(set(keys)):
                lock = self._lock_for(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


entity_locks = EntityLocks()


def is_concurrency_failure(exc: BaseException) -> bool:
    """True when a DB error means 'another transaction got there first'."""
    if not isinstance(exc, DBAPIError):
        return False
    orig = getattr(exc, 'orig', None)
    sqlstate = getattr(orig, 'pgcode', None) or getattr(orig, 'sqlstate', None)
    if sqlstate in SERIALIZATION_SQLSTATES:
        return True
    return 'database is locked' in str(orig or exc).lower()


@contextmanager
def ledger_transaction(session, operation: str, lock_keys=()):
    """
    Serialize on ``lock_keys`` and run the body as one commit.

    Domain errors roll back and propagate unchanged. Lock/serialization
    failures become ``ConcurrencyConflict``; anything else becomes
    ``CommitFailed``. Either way nothing from the body survives.
    """
    with entity_locks.hold(lock_keys):
        try:
            yield session
            session.commit()
        except LedgerError:
            session.rollback()
            raise
        except Exception as e:
            session.rollback()
            if is_concurrency_failure(e):
                logger.warning(f"[LEDGER] {operation}: concurrency conflict ({e})")
                raise ConcurrencyConflict(f'Concurrent update while trying to {operation}, please retry') from e
            logger.exception(f"[LEDGER] {operation}: commit failed")
            raise CommitFailed(operation, e) from e


def retry_on_conflict(func):
    """
    Re-run a service call when it raises ``ConcurrencyConflict``.

    The wrapped function may receive ``retries=<n>`` (total attempts,
    default 3). No other exception is retried.
    """
    @wraps(func)
    def wrapper(*args, retries=DEFAULT_RETRIES, **kwargs):
        attempts = max(1, int(retries))
        for attempt in range(1, attempts + 1):
            try:
                return func(*args, **kwargs)
            except ConcurrencyConflict:
                if attempt == attempts:
                    logger.warning(f"[LEDGER] {func.__name__}: conflict persisted after {attempts} attempts")
                    raise
                logger.info(f"[LEDGER] {func.__name__}: concurrency conflict, retry {attempt}/{attempts - 1}")
                time.sleep(0.05 * attempt)
    return wrapper
