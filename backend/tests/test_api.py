from __future__ import annotations
import pytest

from cluehunt.config import settings
from conftest import png_bytes, staff_headers, team_headers


async def _bootstrap(client):
    """Coordinator creates a team and a text clue followed by a photo clue."""
    r = await client.post("/auth/coordinator", json={"passcode": settings.coordinator_passcode})
    assert r.status_code == 200
    staff = {"Authorization": f"Bearer {r.json()['access']}"}
    team = (await client.post("/teams", json={"name": "Owls"}, headers=staff)).json()
    text_clue = (await client.post("/clues", json={"title": "Bridge", "answer_kind": "text",
                                                   "expected_answer": "troll"}, headers=staff)).json()
    photo_clue = (await client.post("/clues", json={"title": "Statue", "answer_kind": "photo",
                                                    "expected_answer": "ignored"}, headers=staff)).json()
    r = await client.post("/auth/join", json={"code": team["join_code"]})
    assert r.status_code == 200 and r.json()["team_name"] == "Owls"
    player = {"Authorization": f"Bearer {r.json()['access']}"}
    return staff, player, team, text_clue, photo_clue


@pytest.mark.asyncio
async def test_bad_credentials(client):
    assert (await client.post("/auth/coordinator", json={"passcode": "nope"})).status_code == 401
    assert (await client.post("/auth/join", json={"code": "000000"})).status_code == 404


@pytest.mark.asyncio
async def test_roles_are_enforced(client):
    staff, player, *_ = await _bootstrap(client)
    assert (await client.get("/reviews", headers=player)).status_code == 403
    assert (await client.post("/announcements", json={"message": "x"}, headers=player)).status_code == 403
    assert (await client.get("/progress/current", headers=staff)).status_code == 403
    r = await client.get("/reviews", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_clue_order_and_hidden_answers(client):
    staff, player, _, text_clue, photo_clue = await _bootstrap(client)
    assert (text_clue["order_index"], photo_clue["order_index"]) == (0, 1)
    assert photo_clue["expected_answer"] == ""
    cur = (await client.get("/progress/current", headers=player)).json()
    assert cur["clue"]["id"] == text_clue["id"] and cur["position"] == 1 and cur["total"] == 2
    assert "expected_answer" not in cur["clue"]


@pytest.mark.asyncio
async def test_submit_approve_advance(client, media, jobs):
    staff, player, team, text_clue, photo_clue = await _bootstrap(client)

    r = await client.post("/submissions", data={"clue_id": text_clue["id"], "answer_kind": "text",
                                                "text": "  under the bridge "}, headers=player)
    assert r.status_code == 201
    sub = r.json()
    assert sub["content"] == "under the bridge" and sub["status"] == "pending"
    assert "media_delete_handle" not in sub

    dup = await client.post("/submissions", data={"clue_id": text_clue["id"], "answer_kind": "text",
                                                  "text": "again"}, headers=player)
    assert dup.status_code == 409

    queue = (await client.get("/reviews", headers=staff)).json()
    assert [s["id"] for s in queue] == [sub["id"]]
    r = await client.post(f"/reviews/{sub['id']}/approve", headers=staff)
    assert r.status_code == 200 and r.json()["status"] == "approved"
    # replayed decision is harmless
    assert (await client.post(f"/reviews/{sub['id']}/approve", headers=staff)).status_code == 200

    cur = (await client.get("/progress/current", headers=player)).json()
    assert cur["clue"]["id"] == photo_clue["id"] and cur["completed"] == 1

    r = await client.post("/submissions", data={"clue_id": photo_clue["id"], "answer_kind": "photo"},
                          files={"file": ("statue.png", png_bytes(), "image/png")}, headers=player)
    assert r.status_code == 201
    photo = r.json()
    assert photo["uploading"] is False and photo["content"].startswith("https://media.test/")
    assert len(jobs.scheduled) == 1

    r = await client.post(f"/reviews/{photo['id']}/approve", headers=staff)
    assert r.status_code == 200
    # media removal runs as a background task after the response
    assert media.deleted == ["submissions/photo-1.png"]

    board = (await client.get("/teams/leaderboard", headers=player)).json()
    assert board[0]["finished"] is True and board[0]["completed"] == 2
    anns = (await client.get("/announcements", headers=player)).json()
    assert anns[0]["priority"] == "high"


@pytest.mark.asyncio
async def test_upload_failure_then_retry(client, media):
    staff, player, team, text_clue, photo_clue = await _bootstrap(client)
    media.script = ["hang", "hang"]
    form = {"clue_id": photo_clue["id"], "answer_kind": "photo"}
    r = await client.post("/submissions", data=form,
                          files={"file": ("statue.png", png_bytes(), "image/png")}, headers=player)
    assert r.status_code == 502

    mine = (await client.get("/submissions/mine", headers=player)).json()
    assert [(s["status"], s["uploading"], s["content"]) for s in mine] == [("upload_failed", False, "")]

    r = await client.post("/submissions", data=form,
                          files={"file": ("statue.png", png_bytes(), "image/png")}, headers=player)
    assert r.status_code == 201

    failed_id = mine[0]["id"]
    assert (await client.delete(f"/reviews/{failed_id}", headers=staff)).status_code == 204
    stats = (await client.get("/reviews/stats", headers=staff)).json()
    assert stats["pending"] == 1 and stats["upload_failed"] == 0


@pytest.mark.asyncio
async def test_reject_notification_delivered_once(client):
    staff, player, team, text_clue, _ = await _bootstrap(client)
    sub = (await client.post("/submissions", data={"clue_id": text_clue["id"], "answer_kind": "text",
                                                   "text": "goblin"}, headers=player)).json()
    r = await client.post(f"/reviews/{sub['id']}/reject", json={"feedback": "Look under it"}, headers=staff)
    assert r.status_code == 200 and r.json()["feedback"] == "Look under it"

    first = (await client.post("/notifications/take", headers=player)).json()
    assert [n["message"] for n in first] == ["Look under it"]
    assert (await client.post("/notifications/take", headers=player)).json() == []


@pytest.mark.asyncio
async def test_finale_requires_staff_grant(client):
    staff, player, team, text_clue, photo_clue = await _bootstrap(client)
    await client.put("/finale/config", json={"formula_text": "??? + 1", "missing_answer": "Oak"}, headers=staff)
    r = await client.post("/finale/solve", json={"answer": "oak"}, headers=player)
    assert r.status_code == 403
    view = (await client.get("/finale/me", headers=player)).json()
    assert view["open"] is False and view["formula_text"] is None


@pytest.mark.asyncio
async def test_delete_team_removes_its_media(client, media):
    staff, player, team, text_clue, photo_clue = await _bootstrap(client)
    await client.post("/submissions", data={"clue_id": photo_clue["id"], "answer_kind": "photo"},
                      files={"file": ("statue.png", png_bytes(), "image/png")}, headers=player)
    assert (await client.delete(f"/teams/{team['id']}", headers=staff)).status_code == 204
    assert media.deleted == ["submissions/photo-1.png"]
    assert (await client.get("/teams", headers=staff)).json() == []


@pytest.mark.asyncio
async def test_tokens_helpers_match_login(client):
    staff, player, team, *_ = await _bootstrap(client)
    r = await client.get("/progress/current", headers=team_headers(team["id"]))
    assert r.status_code == 200
    assert (await client.get("/teams/timing", headers=staff_headers())).status_code == 200
