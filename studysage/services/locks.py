"""Per-user serialization of progress updates.

Read-modify-write on a user row runs under an in-process ``asyncio.Lock``
keyed by user id, inside one database transaction that re-reads the row
``FOR UPDATE``. The row also carries a version counter, so a writer from
another process surfaces as ``StaleDataError``; the unit is then rolled back
and recomputed from a fresh read.
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from studysage.core.errors import NotFoundError, PersistenceConflictError
from studysage.models.user import User

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UserLocks:
    """Registry of one asyncio.Lock per user id. Unused locks are dropped."""

    def __init__(self):
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def get(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, user_id: str) -> AsyncIterator[None]:
        lock = self.get(user_id)
        async with lock:
            yield


# Shared by every service in the process
user_locks = UserLocks()


async def load_user_for_update(db: AsyncSession, user_id: str) -> User:
    """Re-read a user row with a row lock, refreshing any cached instance."""
    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return user


async def run_user_update(
    db: AsyncSession,
    user_id: str,
    apply: Callable[[User], Awaitable[T]],
    *,
    max_retries: int,
    locks: UserLocks = user_locks,
) -> T:
    """Run ``apply`` on a freshly locked user row and commit, as one unit.

    ``apply`` may add rows to the session; they are committed together with
    the user update or discarded with it. On a version conflict the whole
    unit is retried, ``apply`` recomputing from the re-read row.
    """
    async with locks.hold(user_id):
        for attempt in range(1, max_retries + 1):
            try:
                user = await load_user_for_update(db, user_id)
                outcome = await apply(user)
                await db.commit()
                return outcome
            except StaleDataError:
                await db.rollback()
                logger.warning(
                    "Concurrent update on user %s (attempt %d/%d), retrying",
                    user_id, attempt, max_retries,
                )
            except BaseException:
                await db.rollback()
                raise

    raise PersistenceConflictError(
        f"Could not save progress after {max_retries} attempts, please retry"
    )
