from __future__ import annotations
import uuid
import pytest
from sqlalchemy import select

from cluehunt.models.notice import Notification
from cluehunt.services import notices
from cluehunt.services.teams import create_team


@pytest.mark.asyncio
async def test_take_unread_surfaces_each_notification_once(session, feed):
    team = await create_team(session, feed, "Owls")
    other = await create_team(session, feed, "Foxes")
    await notices.notify_team(session, feed, team.id, "first")
    await notices.notify_team(session, feed, team.id, "second")
    await notices.notify_team(session, feed, other.id, "not yours")

    got = await notices.take_unread(session, feed, team.id)
    assert [n.message for n in got] == ["first", "second"]
    assert all(n.read for n in got)
    assert await notices.take_unread(session, feed, team.id) == []
    assert [n.message for n in await notices.take_unread(session, feed, other.id)] == ["not yours"]


@pytest.mark.asyncio
async def test_mark_read_is_scoped_to_team(session, feed):
    team = await create_team(session, feed, "Owls")
    other = await create_team(session, feed, "Foxes")
    n = await notices.notify_team(session, feed, team.id, "hello")
    with pytest.raises(notices.NoticeNotFound):
        await notices.mark_read(session, feed, n.id, other.id)
    assert (await notices.mark_read(session, feed, n.id, team.id)).read
    # second call is a no-op
    assert (await notices.mark_read(session, feed, n.id, team.id)).read


@pytest.mark.asyncio
async def test_announcement_lifecycle(session, feed):
    async with feed.subscribe("announcements") as sub:
        a = await notices.announce(session, feed, "Lunch at noon", title="Break")
        b = await notices.announce(session, feed, "Hint for clue 3", priority="high")
        edited = await notices.edit_announcement(session, feed, a.id, message="Lunch at 12:30")
        await notices.delete_announcement(session, feed, b.id)
        ops = [(await sub.get()).op for _ in range(4)]
    assert ops == ["added", "added", "modified", "removed"]
    assert edited.edited_at is not None and edited.title == "Break"
    remaining = await notices.list_announcements(session)
    assert [x.message for x in remaining] == ["Lunch at 12:30"]

    with pytest.raises(notices.NoticeNotFound):
        await notices.edit_announcement(session, feed, uuid.uuid4(), message="x")


@pytest.mark.asyncio
async def test_two_devices_never_take_the_same_notification(session_factory, feed):
    async with session_factory() as phone, session_factory() as tablet:
        team = await create_team(phone, feed, "Owls")
        await notices.notify_team(phone, feed, team.id, "hello")
        # the tablet already holds the row as unread
        held = (await tablet.execute(select(Notification))).scalars().all()
        assert [n.read for n in held] == [False]

        first = await notices.take_unread(phone, feed, team.id)
        second = await notices.take_unread(tablet, feed, team.id)
    assert [n.message for n in first] == ["hello"]
    assert second == []
