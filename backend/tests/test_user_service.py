"""
ToolHire Backend: User Service Tests
======================================

What:  Admin user lookups and the account-deletion cascade.
How:   Real in-memory SQLite with foreign keys ON, so any row left behind
       that still points at the user makes the final DELETE fail.

What we test:
    ✅ Every dependent row is removed and counted per table
    ✅ Bookings of the user's tools go even when someone else rented them
    ✅ Disputes the user only moderated survive, detached
    ✅ Other users' data is untouched
    ✅ Unknown users and database failures
    ✅ A failure partway through the cascade leaves every row in place
"""

import uuid
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from toolhire.exceptions import DatabaseError, NotFoundError
from toolhire.models import (
    Booking,
    DepositCaptureJob,
    Dispute,
    Notification,
    Review,
    Tool,
    Transaction,
    User,
    UserActivity,
    UserSession,
    Wallet,
)
from toolhire.services.user_service import UserService


async def count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


class TestLookups:
    def setup_method(self):
        self.service = UserService()

    @pytest.mark.asyncio
    async def test_get_user(self, db_session, factory):
        user = await factory.user(first_name="Grace", last_name="Hopper")

        found = await self.service.get_user(db_session, user.id)

        assert found.id == user.id
        assert found.first_name == "Grace"

    @pytest.mark.asyncio
    async def test_get_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.get_user(db_session, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_list_users_search_and_paging(self, db_session, factory):
        await factory.user(first_name="Grace", email="grace@example.com")
        await factory.user(first_name="Alan", email="alan@example.com")
        await factory.user(first_name="Ada", email="ada@example.com")

        page = await self.service.list_users(db_session, limit=2, offset=0)
        searched = await self.service.list_users(db_session, search="GRACE")

        assert page.total == 3
        assert len(page.items) == 2
        assert searched.total == 1
        assert searched.items[0].email == "grace@example.com"

    @pytest.mark.asyncio
    async def test_list_users_database_error(self, mock_db_session):
        mock_db_session.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))

        with pytest.raises(DatabaseError):
            await self.service.list_users(mock_db_session)


class TestAccountDeletion:
    def setup_method(self):
        self.service = UserService()

    @pytest.mark.asyncio
    async def test_removes_everything_that_depends_on_the_user(self, db_session, factory):
        leaving = await factory.user()
        other = await factory.user()
        third = await factory.user()
        wallet = await factory.wallet(leaving)

        own_tool = await factory.tool(leaving)
        others_tool = await factory.tool(other)
        # other rents leaving's tool; leaving rents other's tool
        rented_out = await factory.booking(own_tool, other)
        rented_in = await factory.booking(others_tool, leaving)
        db_session.add(DepositCaptureJob(booking_id=rented_out.id, scheduled_at=rented_out.created_at))

        dispute = await factory.dispute(other, leaving, booking_id=rented_out.id)
        await factory.transaction(sender_id=other.id, booking_id=rented_out.id)
        await factory.transaction(wallet_id=wallet.id)
        await factory.transaction(sender_id=third.id, dispute_id=dispute.id)
        await factory.review(other, leaving, booking_id=rented_in.id)
        await factory.review(third, other, tool_id=own_tool.id)
        await factory.activity(leaving)
        db_session.add_all(
            [
                UserSession(user_id=leaving.id),
                Notification(user_id=leaving.id, type="system", title="Hi", message="Welcome"),
            ]
        )
        await db_session.flush()

        result = await self.service.delete_user_account(db_session, leaving.id)

        assert result.user_id == leaving.id
        assert result.deleted == {
            "user_sessions": 1,
            "user_activities": 1,
            "notifications": 1,
            "transactions": 3,
            "reviews": 2,
            "disputes": 1,
            "deposit_capture_jobs": 1,
            "bookings": 2,
            "tools": 1,
            "wallets": 1,
            "users": 1,
        }
        assert await db_session.get(User, leaving.id) is None
        for model in (UserSession, UserActivity, Notification, Transaction, Review,
                      Dispute, DepositCaptureJob, Booking, Wallet):
            assert await count(db_session, model) == 0
        assert await count(db_session, Tool) == 1
        assert await count(db_session, User) == 2

    @pytest.mark.asyncio
    async def test_unrelated_rows_survive(self, db_session, factory):
        leaving = await factory.user()
        a = await factory.user()
        b = await factory.user()
        tool = await factory.tool(a)
        booking = await factory.booking(tool, b)
        await factory.transaction(sender_id=b.id, recipient_id=a.id, booking_id=booking.id)
        await factory.review(b, a)
        await factory.dispute(b, a)

        result = await self.service.delete_user_account(db_session, leaving.id)

        assert result.deleted["users"] == 1
        assert result.deleted["bookings"] == 0
        assert await count(db_session, Booking) == 1
        assert await count(db_session, Transaction) == 1
        assert await count(db_session, Review) == 1
        assert await count(db_session, Dispute) == 1

    @pytest.mark.asyncio
    async def test_moderated_disputes_are_detached(self, db_session, factory):
        moderator = await factory.user(is_admin=True)
        a = await factory.user()
        b = await factory.user()
        dispute = await factory.dispute(a, b, moderator_id=moderator.id)

        result = await self.service.delete_user_account(db_session, moderator.id)

        assert result.moderated_disputes_detached == 1
        remaining = (await db_session.execute(select(Dispute.moderator_id))).scalar_one()
        assert remaining is None
        assert (await db_session.execute(select(Dispute.id))).scalar_one() == dispute.id

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.delete_user_account(db_session, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_database_failure_is_translated(self, mock_db_session):
        mock_db_session.get.return_value = User(id=uuid.uuid4(), email="x@example.com")
        mock_db_session.execute.side_effect = OperationalError("DELETE", {}, Exception("locked"))

        with pytest.raises(DatabaseError) as exc_info:
            await self.service.delete_user_account(mock_db_session, uuid.uuid4())
        assert "No data was removed" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_failure_midway_leaves_every_row(self, db_session, factory):
        leaving = await factory.user()
        other = await factory.user()
        wallet = await factory.wallet(leaving)
        tool = await factory.tool(leaving)
        booking = await factory.booking(tool, other)
        await factory.transaction(wallet_id=wallet.id)
        await factory.transaction(sender_id=other.id, booking_id=booking.id)
        await factory.activity(leaving)
        db_session.add(UserSession(user_id=leaving.id))
        await db_session.commit()

        execute = db_session.execute

        async def bookings_delete_fails(statement, *args, **kwargs):
            if getattr(statement, "is_delete", False) and statement.table.name == "bookings":
                raise OperationalError("DELETE FROM bookings", {}, Exception("disk I/O error"))
            return await execute(statement, *args, **kwargs)

        with patch.object(db_session, "execute", new=bookings_delete_fails):
            with pytest.raises(DatabaseError):
                await self.service.delete_user_account(db_session, leaving.id)
        # What get_db_session does when the handler raises
        await db_session.rollback()

        assert await db_session.get(User, leaving.id) is not None
        assert await count(db_session, User) == 2
        assert await count(db_session, Wallet) == 1
        assert await count(db_session, UserSession) == 1
        assert await count(db_session, UserActivity) == 1
        assert await count(db_session, Transaction) == 2
        assert await count(db_session, Booking) == 1
        assert await count(db_session, Tool) == 1
