from __future__ import annotations
import pytest

from cluehunt.schemas.finale import FinaleConfigIn
from cluehunt.services import finale
from cluehunt.services.teams import create_team, set_finale_approval
from conftest import add_clues


async def _ready_team(session, feed, clues, approved=True):
    team = await create_team(session, feed, "Owls")
    team.completed_clue_ids = [str(c.id) for c in clues]
    await session.commit()
    if approved:
        team = await set_finale_approval(session, feed, team.id, True)
    return team


@pytest.mark.asyncio
async def test_locked_until_all_clues_and_approval(session, feed):
    clues = await add_clues(session, ("A", "text"), ("B", "text"), ("C", "text"))
    await finale.save_config(session, FinaleConfigIn(formula_text="X = ??? + 4", missing_answer="Lantern"))
    team = await _ready_team(session, feed, clues[:2])

    view = await finale.player_view(session, team)
    assert not view.eligible and not view.open and view.formula_text is None
    with pytest.raises(finale.FinaleLocked):
        await finale.solve(session, feed, team, "lantern")

    team.completed_clue_ids = [str(c.id) for c in clues]
    await session.commit()
    view = await finale.player_view(session, team)
    assert view.open and view.formula_text == "X = ??? + 4"


@pytest.mark.asyncio
async def test_solve_is_case_insensitive_and_idempotent(session, feed):
    clues = await add_clues(session, ("A", "text"))
    await finale.save_config(session, FinaleConfigIn(missing_answer="Lantern"))
    team = await _ready_team(session, feed, clues)

    assert (await finale.solve(session, feed, team, "lamp")).correct is False
    result = await finale.solve(session, feed, team, "  LANTERN ")
    assert result.correct and result.solved
    assert team.finale_solved and team.finale_solved_at is not None
    assert (await finale.solve(session, feed, team, "anything")).solved


@pytest.mark.asyncio
async def test_missing_answer_is_a_config_error(session, feed):
    clues = await add_clues(session, ("A", "text"))
    team = await _ready_team(session, feed, clues)
    with pytest.raises(finale.FinaleNotConfigured):
        await finale.solve(session, feed, team, "lantern")
