from __future__ import annotations
import asyncio
from datetime import timedelta
import pytest
from sqlalchemy import select, func

from cluehunt.config import settings
from cluehunt.db import utcnow
from cluehunt.models.submission import Submission
from cluehunt.models.team import Team
from cluehunt.services.changefeed import ChangeFeed
from cluehunt.services.reviews import ReviewEngine
from cluehunt.services.submissions import (
    DuplicateSubmission, SubmissionInvalid, UploadFailed, submit_answer, sweep_stale_uploads,
)
from cluehunt.services.teams import create_team
from conftest import FakeMediaStore, add_clues, png_bytes


async def _count(session) -> int:
    return await session.scalar(select(func.count()).select_from(Submission))


@pytest.mark.asyncio
async def test_text_answer_is_trimmed_and_pending(session, feed, media):
    (clue,) = await add_clues(session, ("Bridge", "text", "troll"))
    team = await create_team(session, feed, "Owls")
    async with feed.subscribe("submissions", team_id=team.id) as sub:
        s = await submit_answer(session, feed, media, team_id=team.id, clue_id=clue.id,
                                answer_kind="text", text="  under the bridge \n")
        change = await sub.get()
    assert s.content == "under the bridge"
    assert s.status == "pending" and s.uploading is False
    assert change.op == "added" and change.doc["content"] == "under the bridge"
    # handles never leave the server
    assert "media_delete_handle" not in change.doc
    await session.refresh(team)
    assert team.clue_statuses[str(clue.id)]["status"] == "pending"


@pytest.mark.asyncio
async def test_empty_text_rejected(session, feed, media):
    (clue,) = await add_clues(session, ("Bridge", "text"))
    team = await create_team(session, feed, "Owls")
    with pytest.raises(SubmissionInvalid):
        await submit_answer(session, feed, media, team_id=team.id, clue_id=clue.id, answer_kind="text", text="   ")
    assert await _count(session) == 0


@pytest.mark.asyncio
async def test_kind_must_match_clue(session, feed, media):
    (clue,) = await add_clues(session, ("Statue", "photo"))
    team = await create_team(session, feed, "Owls")
    with pytest.raises(SubmissionInvalid):
        await submit_answer(session, feed, media, team_id=team.id, clue_id=clue.id, answer_kind="text", text="hi")


@pytest.mark.asyncio
async def test_duplicate_guard_blocks_second_pending(session, feed, media):
    (clue,) = await add_clues(session, ("Bridge", "text"))
    team = await create_team(session, feed, "Owls")
    await submit_answer(session, feed, media, team_id=team.id, clue_id=clue.id, answer_kind="text", text="one")
    with pytest.raises(DuplicateSubmission):
        await submit_answer(session, feed, media, team_id=team.id, clue_id=clue.id, answer_kind="text", text="two")
    assert await _count(session) == 1


@pytest.mark.asyncio
async def test_photo_two_phase_write(session, feed, media, jobs):
    (clue,) = await add_clues(session, ("Statue", "photo"))
    team = await create_team(session, feed, "Owls")
    async with feed.subscribe("submissions") as sub:
        s = await submit_answer(session, feed, media, team_id=team.id, clue_id=clue.id,
                                answer_kind="photo", photo=png_bytes(), jobs=jobs)
        placeholder = await sub.get()
        patched = await sub.get()
    assert placeholder.op == "added"
    assert placeholder.doc["uploading"] is True and placeholder.doc["content"] == ""
    assert patched.op == "modified" and patched.id == placeholder.id
    assert patched.doc["uploading"] is False
    assert s.content == "https://media.test/photo-1.png"
    assert s.media_delete_handle == "submissions/photo-1.png"
    # a reconciliation sweep is always scheduled behind a placeholder
    assert len(jobs.scheduled) == 1


@pytest.mark.asyncio
async def test_non_image_photo_rejected(session, feed, media):
    (clue,) = await add_clues(session, ("Statue", "photo"))
    team = await create_team(session, feed, "Owls")
    with pytest.raises(SubmissionInvalid):
        await submit_answer(session, feed, media, team_id=team.id, clue_id=clue.id,
                            answer_kind="photo", photo=b"definitely not a png")
    assert media.calls == 0


@pytest.mark.asyncio
async def test_transient_error_is_retried(session, feed, jobs):
    media = FakeMediaStore(["error"])
    (clue,) = await add_clues(session, ("Statue", "photo"))
    team = await create_team(session, feed, "Owls")
    s = await submit_answer(session, feed, media, team_id=team.id, clue_id=clue.id,
                            answer_kind="photo", photo=png_bytes(), jobs=jobs)
    assert media.calls == 2
    assert s.status == "pending" and s.content.startswith("https://")


@pytest.mark.asyncio
async def test_two_timeouts_settle_as_upload_failed_and_retry_is_accepted(session, feed, jobs):
    media = FakeMediaStore(["hang", "hang"])
    (clue,) = await add_clues(session, ("Statue", "photo"))
    team = await create_team(session, feed, "Owls")
    with pytest.raises(UploadFailed) as exc:
        await submit_answer(session, feed, media, team_id=team.id, clue_id=clue.id,
                            answer_kind="photo", photo=png_bytes(), jobs=jobs)
    failed = await session.get(Submission, exc.value.submission_id)
    assert failed.status == "upload_failed"
    assert failed.uploading is False and failed.content == ""

    # upload_failed does not block the team
    again = await submit_answer(session, feed, media, team_id=team.id, clue_id=clue.id,
                                answer_kind="photo", photo=png_bytes(), jobs=jobs)
    assert again.status == "pending" and again.content
    assert await _count(session) == 2


@pytest.mark.asyncio
async def test_failed_upload_does_not_mark_clue_submitted(session, feed, jobs):
    media = FakeMediaStore(["error", "error"])
    (clue,) = await add_clues(session, ("Statue", "photo"))
    team = await create_team(session, feed, "Owls")
    with pytest.raises(UploadFailed):
        await submit_answer(session, feed, media, team_id=team.id, clue_id=clue.id,
                            answer_kind="photo", photo=png_bytes(), jobs=jobs)
    team = await session.get(Team, team.id)
    assert str(clue.id) not in (team.clue_statuses or {})


@pytest.mark.asyncio
async def test_completed_clue_cannot_be_resubmitted(session, feed, media):
    (clue,) = await add_clues(session, ("Bridge", "text"))
    team = await create_team(session, feed, "Owls")
    team.completed_clue_ids = [str(clue.id)]
    await session.commit()
    with pytest.raises(SubmissionInvalid):
        await submit_answer(session, feed, media, team_id=team.id, clue_id=clue.id, answer_kind="text", text="again")


@pytest.mark.asyncio
async def test_sweep_settles_stranded_placeholders(session, feed, media):
    (clue,) = await add_clues(session, ("Statue", "photo"))
    team = await create_team(session, feed, "Owls")
    stranded = Submission(team_id=team.id, team_name=team.name, clue_id=clue.id, clue_title=clue.title,
                          answer_kind="photo", content="", status="pending", uploading=True,
                          submitted_at=utcnow() - timedelta(hours=1))
    fresh = Submission(team_id=team.id, team_name=team.name, clue_id=clue.id, clue_title=clue.title,
                       answer_kind="photo", content="", status="pending", uploading=True)
    session.add_all([stranded, fresh])
    await session.commit()

    assert await sweep_stale_uploads(session, feed, older_than_seconds=300) == 1
    await session.refresh(stranded)
    await session.refresh(fresh)
    assert stranded.status == "upload_failed" and stranded.uploading is False
    assert fresh.status == "pending" and fresh.uploading is True


class ReviewDuringUpload(FakeMediaStore):
    """Runs `during` once while the first photo transfer is in flight."""

    def __init__(self, during):
        super().__init__()
        self.during = during

    async def upload(self, data, content_type):
        if self.during is not None:
            during, self.during = self.during, None
            await during()
        return await super().upload(data, content_type)


@pytest.mark.asyncio
async def test_slow_upload_keeps_reviews_that_landed_meanwhile(session_factory, feed, monkeypatch):
    monkeypatch.setattr(settings, "upload_timeout_seconds", 5)
    async with session_factory() as player, session_factory() as staff:
        a, b = await add_clues(player, ("A", "text"), ("B", "photo"))
        team = await create_team(player, feed, "Owls")
        sa = await submit_answer(player, feed, FakeMediaStore(), team_id=team.id, clue_id=a.id,
                                 answer_kind="text", text="troll")

        async def approve_a():
            await ReviewEngine(staff, feed, FakeMediaStore()).approve(sa.id)

        await submit_answer(player, feed, ReviewDuringUpload(approve_a), team_id=team.id, clue_id=b.id,
                            answer_kind="photo", photo=png_bytes())

    async with session_factory() as check:
        fresh = await check.get(Team, team.id)
    assert fresh.completed_clue_ids == [str(a.id)]
    assert fresh.clue_statuses[str(a.id)]["status"] == "completed"
    assert fresh.clue_statuses[str(b.id)]["status"] == "pending"
    assert "submitted_at" in fresh.clue_statuses[str(b.id)]


class Loopback:
    """Relay that hands each diff straight to a feed in another process."""

    def __init__(self, target: ChangeFeed):
        self.target = target

    def send(self, payload: str) -> None:
        self.target.receive(payload)


@pytest.mark.asyncio
async def test_worker_sweep_reaches_live_subscribers(session_factory, feed, monkeypatch):
    from cluehunt.jobs import reconcile_uploads as job

    async with session_factory() as session:
        (clue,) = await add_clues(session, ("Statue", "photo"))
        team = await create_team(session, feed, "Owls")
        session.add(Submission(team_id=team.id, team_name=team.name, clue_id=clue.id, clue_title=clue.title,
                               answer_kind="photo", content="", status="pending", uploading=True,
                               submitted_at=utcnow() - timedelta(hours=1)))
        await session.commit()

    monkeypatch.setattr(job, "SessionLocal", session_factory)
    monkeypatch.setattr(job, "build_feed", lambda: ChangeFeed(relay=Loopback(feed)))
    async with feed.subscribe("submissions", team_id=team.id) as sub:
        assert await job._run(older_than_seconds=300) == 1
        change = await asyncio.wait_for(sub.get(), timeout=1)
    assert change.op == "modified"
    assert change.doc["status"] == "upload_failed" and change.doc["uploading"] is False
