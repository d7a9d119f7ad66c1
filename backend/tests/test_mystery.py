from __future__ import annotations
import pytest
from sqlalchemy import select

from cluehunt.models.notice import Announcement
from cluehunt.schemas.mystery import AccusationCreate, MysterySetup
from cluehunt.services import mystery
from cluehunt.services.teams import create_team
from conftest import add_clues


def _setup(start_clue_id=None, unlock=None):
    return MysterySetup.model_validate({
        "start_clue_id": start_clue_id,
        "victim": {"name": "Lord Ashby", "occupation": "Collector"},
        "suspects": [
            {"id": "butler", "name": "Mr. Graves"},
            {"id": "niece", "name": "Clara", "is_culprit": True},
        ],
        "evidence": [
            {"id": "e1", "title": "Broken watch"},
            {"id": "e2", "title": "Train ticket", "unlock_clue_id": unlock},
        ],
    })


@pytest.mark.asyncio
async def test_cannot_activate_without_victim_and_suspects(session, feed):
    with pytest.raises(mystery.MysteryIncomplete):
        await mystery.toggle_active(session, feed)
    await mystery.save_mystery(session, feed, _setup())
    assert (await mystery.toggle_active(session, feed)).active is True
    assert (await mystery.toggle_active(session, feed)).active is False


@pytest.mark.asyncio
async def test_gate_and_player_view(session, feed):
    a, b = await add_clues(session, ("A", "text"), ("B", "text"))
    team = await create_team(session, feed, "Owls")
    await mystery.save_mystery(session, feed, _setup(start_clue_id=str(a.id), unlock=str(b.id)))
    await mystery.toggle_active(session, feed)

    view = await mystery.player_view(session, team)
    assert view.open is False and view.suspects == []
    with pytest.raises(mystery.GateClosed):
        await mystery.accuse(session, feed, team, AccusationCreate(suspect_id="niece"))

    team.completed_clue_ids = [str(a.id)]
    await session.commit()
    view = await mystery.player_view(session, team)
    assert view.open is True
    assert [e.id for e in view.evidence] == ["e1"] and view.total_evidence == 2
    # culprit flag stays hidden until the reveal
    assert not any(s.is_culprit for s in view.suspects)


@pytest.mark.asyncio
async def test_one_accusation_per_team_and_correctness(session, feed):
    owls = await create_team(session, feed, "Owls")
    foxes = await create_team(session, feed, "Foxes")
    await mystery.save_mystery(session, feed, _setup())
    await mystery.toggle_active(session, feed)

    right = await mystery.accuse(session, feed, owls, AccusationCreate(suspect_id="niece", reasoning="motive"))
    assert right.correct and owls.side_quest_solved
    with pytest.raises(mystery.AlreadyAccused):
        await mystery.accuse(session, feed, owls, AccusationCreate(suspect_id="butler"))

    custom = await mystery.accuse(session, feed, foxes, AccusationCreate(custom_name="Clara"))
    assert custom.is_custom and not custom.correct
    other = await create_team(session, feed, "Bees")
    with pytest.raises(mystery.UnknownSuspect):
        await mystery.accuse(session, feed, other, AccusationCreate(suspect_id="gardener"))


@pytest.mark.asyncio
async def test_reveal_announces_and_reset_clears(session, feed):
    owls = await create_team(session, feed, "Owls")
    await mystery.save_mystery(session, feed, _setup())
    await mystery.toggle_active(session, feed)
    await mystery.accuse(session, feed, owls, AccusationCreate(suspect_id="niece"))

    m = await mystery.reveal(session, feed)
    assert m.revealed and m.revealed_at is not None
    ann = (await session.execute(select(Announcement))).scalars().one()
    assert "Clara" in ann.message and "Owls" in ann.message and ann.priority == "high"
    view = await mystery.player_view(session, owls)
    assert any(s.is_culprit for s in view.suspects)

    m = await mystery.reset(session, feed)
    assert not m.active and not m.revealed
    assert await mystery.list_accusations(session) == []
