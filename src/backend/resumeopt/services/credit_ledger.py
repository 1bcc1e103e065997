"""Pay-per-use credit ledger.

Every counter change is a single conditional UPDATE so two requests racing
for the last credit cannot both win. Functions never commit: the caller owns
the transaction, which lets the webhook grant credits and record the
fulfillment atomically.
"""

import enum
import logging
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from resumeopt.core.errors import InsufficientCredit, NotFound
from resumeopt.models.orm import SubscriptionStatus, User

logger = logging.getLogger(__name__)


class CreditKind(str, enum.Enum):
    ats = "ats"
    optimization = "optimization"

    @property
    def column(self):
        if self is CreditKind.ats:
            return User.ppu_ats_credits
        return User.ppu_optimization_credits


def is_premium(user: User) -> bool:
    return user.subscription_status == SubscriptionStatus.premium


def remaining(user: User, kind: CreditKind) -> int:
    return getattr(user, kind.column.key)


def has_entitlement(user: User, kind: CreditKind) -> bool:
    return is_premium(user) or remaining(user, kind) > 0


async def consume(db: AsyncSession, user_id: UUID, kind: CreditKind) -> bool:
    """Take one credit of ``kind`` from the user.

    Returns True if a credit was debited, False if the user is premium and
    nothing was touched. Raises InsufficientCredit when the counter is 0.
    """
    column = kind.column
    result = await db.execute(
        update(User)
        .where(
            User.id == user_id,
            column > 0,
            User.subscription_status != SubscriptionStatus.premium,
        )
        .values({column: column - 1})
        .returning(column)
    )
    left = result.scalar_one_or_none()
    if left is not None:
        logger.info("Consumed %s credit for user %s, %d left", kind.value, user_id, left)
        return True

    status = (
        await db.execute(select(User.subscription_status).where(User.id == user_id))
    ).scalar_one_or_none()
    if status is None:
        raise NotFound(f"User {user_id} not found")
    if status == SubscriptionStatus.premium:
        return False
    raise InsufficientCredit(kind.value)


async def grant(db: AsyncSession, user_id: UUID, kind: CreditKind, amount: int = 1) -> int:
    """Add ``amount`` credits of ``kind``. Returns the new balance."""
    if amount < 1:
        raise ValueError("Grant amount must be positive")
    column = kind.column
    result = await db.execute(
        update(User)
        .where(User.id == user_id)
        .values({column: column + amount})
        .returning(column)
    )
    balance = result.scalar_one_or_none()
    if balance is None:
        raise NotFound(f"User {user_id} not found")
    logger.info("Granted %d %s credit(s) to user %s, balance %d", amount, kind.value, user_id, balance)
    return balance


async def rollback(db: AsyncSession, user_id: UUID, kind: CreditKind) -> int:
    """Give back a credit taken by ``consume`` whose operation failed."""
    return await grant(db, user_id, kind, 1)
