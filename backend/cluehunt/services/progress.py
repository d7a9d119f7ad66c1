from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Sequence, Union

from cluehunt.models.clue import Clue
from cluehunt.models.team import Team

# Pure evaluators: no I/O, callers pass in the snapshots they already hold.


@dataclass(frozen=True)
class MysteryGate:
    """
    Side mystery visibility for one team.
      - active: staff switch
      - trigger_clue_id: clue whose completion opens it (None = open as soon as active)
      - resolved: the team already made its accusation
    """
    active: bool
    trigger_clue_id: str | None = None
    resolved: bool = False


@dataclass(frozen=True)
class FinaleGate:
    """Finale: automatic eligibility (all clues done) plus a manual staff grant."""
    total_clues: int


GateCondition = Union[MysteryGate, FinaleGate]


def completed_ids(team: Team) -> set[str]:
    return {str(c) for c in (team.completed_clue_ids or [])}


def completed_count(team: Team) -> int:
    return len(completed_ids(team))


def ordered(clues: Iterable[Clue]) -> list[Clue]:
    return sorted(clues, key=lambda c: c.order_index)


def current_clue(team: Team, clues: Iterable[Clue]) -> Clue | None:
    """Lowest order_index clue the team has not completed; None once the sequence is done."""
    done = completed_ids(team)
    for clue in ordered(clues):
        if str(clue.id) not in done:
            return clue
    return None


def is_complete(team: Team, total_clues: int) -> bool:
    # Zero clues never counts as complete; more completions than clues (clues
    # deleted afterwards) still does.
    return total_clues > 0 and completed_count(team) >= total_clues


def finale_eligible(team: Team, total_clues: int) -> bool:
    return is_complete(team, total_clues)


def is_gate_open(team: Team, gate: GateCondition) -> bool:
    if isinstance(gate, MysteryGate):
        if not gate.active or gate.resolved:
            return False
        return gate.trigger_clue_id is None or str(gate.trigger_clue_id) in completed_ids(team)
    if isinstance(gate, FinaleGate):
        return finale_eligible(team, gate.total_clues) and bool(team.finale_approved)
    raise TypeError(f"unknown gate: {gate!r}")


def unlocked_evidence(active: bool, evidence: Sequence[dict], team: Team) -> list[dict]:
    """Evidence without an unlock clue is always visible; nothing is visible while inactive."""
    if not active:
        return []
    done = completed_ids(team)
    return [e for e in evidence if not e.get("unlock_clue_id") or str(e["unlock_clue_id"]) in done]


@dataclass(frozen=True)
class TeamProgress:
    clue: Clue | None
    position: int
    completed: int
    total: int
    finished: bool


def team_progress(team: Team, clues: Sequence[Clue]) -> TeamProgress:
    total = len(clues)
    current = current_clue(team, clues)
    seq = ordered(clues)
    position = seq.index(current) + 1 if current is not None else total + 1
    known = {str(c.id) for c in clues}
    done = len(completed_ids(team) & known)
    return TeamProgress(
        clue=current,
        position=position,
        completed=done,
        total=total,
        finished=is_complete(team, total) or (total > 0 and current is None),
    )


def _parse_ts(raw) -> datetime | None:
    if not raw:
        return None
    if isinstance(raw, datetime):
        dt = raw
    else:
        try:
            dt = datetime.fromisoformat(str(raw))
        except ValueError:
            return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class TeamTimingStats:
    state: str  # active|pending|finished|unknown
    net_seconds: float
    current_clue_seconds: float


def team_timing(team: Team, total_clues: int, now: datetime) -> TeamTimingStats:
    """
    Net solve time is the sum of (submitted_at - unlocked_at) over clues that have
    both stamps. The current clue's clock runs while active and freezes while a
    submission is pending review.
    """
    statuses: dict = team.clue_statuses or {}
    net = 0.0
    current_secs = 0.0
    state = "unknown"
    for entry in statuses.values():
        start = _parse_ts(entry.get("unlocked_at"))
        end = _parse_ts(entry.get("submitted_at"))
        if start and end:
            net += max(0.0, (end - start).total_seconds())
        elif entry.get("status") == "active" and start:
            current_secs = max(0.0, (now - start).total_seconds())
            state = "active"

    active_id = team.current_clue_id
    entry = statuses.get(str(active_id)) if active_id else None
    if entry and entry.get("status") == "pending":
        start = _parse_ts(entry.get("unlocked_at"))
        end = _parse_ts(entry.get("submitted_at"))
        state = "pending"
        current_secs = max(0.0, (end - start).total_seconds()) if start and end else 0.0

    if is_complete(team, total_clues):
        state = "finished"
        current_secs = 0.0
    return TeamTimingStats(state=state, net_seconds=net, current_clue_seconds=current_secs)


def leaderboard(teams: Iterable[Team]) -> list[Team]:
    return sorted(teams, key=lambda t: (-completed_count(t), t.name.lower()))
