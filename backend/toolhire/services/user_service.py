"""
ToolHire Backend: User Service
================================

What:  Admin lookups over users and the account-deletion cascade.
Why:   A user owns rows in almost every table. Foreign keys have no ON
       DELETE CASCADE, so removal must walk the dependency graph by hand,
       children before parents.
How:   Bulk DELETE statements on the caller's session. The session owner
       (get_db_session / session_scope) commits once at the end or rolls
       everything back, so a failed cascade leaves no partial deletion.

Deletion order:
    user_sessions → user_activities → notifications
    → transactions   (sent, received, on the user's wallet,
                      on affected bookings or affected disputes)
    → reviews        (given, received, on affected bookings or the user's tools)
    → disputes       (initiated, received, on affected bookings or the user's tools)
    → deposit_capture_jobs of affected bookings
    → bookings → tools → wallets → users

    Affected bookings: the user rented them, owns them, or they are for
    one of the user's tools. Transactions go before disputes because a
    transaction may point at a dispute. Disputes the user only moderated
    stay, with moderator_id cleared.
"""

import logging
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from toolhire.exceptions import DatabaseError, NotFoundError
from toolhire.models.booking import Booking, DepositCaptureJob
from toolhire.models.dispute import Dispute
from toolhire.models.review import Review
from toolhire.models.tool import Tool
from toolhire.models.transaction import Transaction
from toolhire.models.user import Notification, User, UserActivity, UserSession, Wallet
from toolhire.schemas.user import AccountDeletionResponse, UserListResponse, UserResponse

logger = logging.getLogger(__name__)


class UserService:
    async def get_user(self, db: AsyncSession, user_id: UUID) -> UserResponse:
        try:
            user = await db.get(User, user_id)
        except SQLAlchemyError as e:
            logger.error("Database error fetching user %s: %s", user_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the user. Please try again.",
                context={"user_id": str(user_id)},
            ) from e

        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return UserResponse.model_validate(user)

    async def list_users(
        self,
        db: AsyncSession,
        limit: int = 20,
        offset: int = 0,
        search: Optional[str] = None,
    ) -> UserListResponse:
        """Newest first. `search` matches email, first or last name, case-insensitively."""
        conditions = []
        if search:
            pattern = f"%{search.strip()}%"
            conditions.append(
                or_(
                    User.email.ilike(pattern),
                    User.first_name.ilike(pattern),
                    User.last_name.ilike(pattern),
                )
            )

        try:
            total = (
                await db.execute(select(func.count(User.id)).where(*conditions))
            ).scalar_one()
            result = await db.execute(
                select(User)
                .where(*conditions)
                .order_by(User.created_at.desc(), User.id)
                .limit(limit)
                .offset(offset)
            )
            users = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Database error listing users: %s", str(e))
            raise DatabaseError(
                message="Could not retrieve users. Please try again.",
                context={"limit": limit, "offset": offset},
            ) from e

        return UserListResponse(
            items=[UserResponse.model_validate(u) for u in users],
            total=total,
            limit=limit,
            offset=offset,
        )

    async def delete_user_account(self, db: AsyncSession, user_id: UUID) -> AccountDeletionResponse:
        """
        Removes the user and everything that depends on them.

        Returns:
            Per-table deletion counts, in deletion order

        Raises:
            NotFoundError: no such user
            DatabaseError: any statement failed; the caller's session rolls back
        """
        try:
            user = await db.get(User, user_id)
            if user is None:
                raise NotFoundError(resource="user", resource_id=str(user_id))

            tool_ids = await self._ids(db, select(Tool.id).where(Tool.owner_id == user_id))
            booking_ids = await self._ids(
                db,
                select(Booking.id).where(
                    or_(
                        Booking.renter_id == user_id,
                        Booking.owner_id == user_id,
                        Booking.tool_id.in_(tool_ids),
                    )
                ),
            )
            dispute_ids = await self._ids(
                db,
                select(Dispute.id).where(
                    or_(
                        Dispute.initiator_id == user_id,
                        Dispute.respondent_id == user_id,
                        Dispute.booking_id.in_(booking_ids),
                        Dispute.tool_id.in_(tool_ids),
                    )
                ),
            )
            wallet_ids = await self._ids(db, select(Wallet.id).where(Wallet.user_id == user_id))

            deleted: Dict[str, int] = {}

            async def remove(table: str, stmt) -> None:
                result = await db.execute(stmt)
                deleted[table] = result.rowcount or 0

            await remove("user_sessions", delete(UserSession).where(UserSession.user_id == user_id))
            await remove(
                "user_activities", delete(UserActivity).where(UserActivity.user_id == user_id)
            )
            await remove(
                "notifications", delete(Notification).where(Notification.user_id == user_id)
            )
            await remove(
                "transactions",
                delete(Transaction).where(
                    or_(
                        Transaction.sender_id == user_id,
                        Transaction.recipient_id == user_id,
                        Transaction.wallet_id.in_(wallet_ids),
                        Transaction.booking_id.in_(booking_ids),
                        Transaction.dispute_id.in_(dispute_ids),
                    )
                ),
            )
            await remove(
                "reviews",
                delete(Review).where(
                    or_(
                        Review.reviewer_id == user_id,
                        Review.reviewee_id == user_id,
                        Review.booking_id.in_(booking_ids),
                        Review.tool_id.in_(tool_ids),
                    )
                ),
            )
            await remove("disputes", delete(Dispute).where(Dispute.id.in_(dispute_ids)))
            detached = await db.execute(
                update(Dispute).where(Dispute.moderator_id == user_id).values(moderator_id=None)
            )
            await remove(
                "deposit_capture_jobs",
                delete(DepositCaptureJob).where(DepositCaptureJob.booking_id.in_(booking_ids)),
            )
            await remove("bookings", delete(Booking).where(Booking.id.in_(booking_ids)))
            await remove("tools", delete(Tool).where(Tool.id.in_(tool_ids)))
            await remove("wallets", delete(Wallet).where(Wallet.user_id == user_id))
            await remove("users", delete(User).where(User.id == user_id))

            await db.flush()
        except NotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error("Account deletion for user %s failed: %s", user_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not delete the account. No data was removed.",
                context={"user_id": str(user_id)},
            ) from e

        logger.info(
            "Deleted account %s: %s",
            user_id,
            ", ".join(f"{table}={count}" for table, count in deleted.items()),
        )
        return AccountDeletionResponse(
            user_id=user_id,
            deleted=deleted,
            moderated_disputes_detached=detached.rowcount or 0,
        )

    @staticmethod
    async def _ids(db: AsyncSession, stmt) -> List[UUID]:
        result = await db.execute(stmt)
        return list(result.scalars().all())


user_service = UserService()
