#!/usr/bin/env python3
"""
Court Rotation — Scheduler (per-game allocation, fairness priority, pairing history)

What's enforced:
- Rounds: a round is `courts` consecutive games; game g belongs to round (g-1)//courts + 1.
- Fairness: every participant gets a priority score each game (lower = sooner on court).
  Nobody runs more than one game ahead of the pool minimum, and everybody plays once
  before anybody plays twice.
- Every-two-rounds rule: from round 2 on, anyone below the required games must play.
- Games ceiling (HARD): committing a team may not push the pool-wide games spread past
  max_games_difference (relaxed to max(2, current spread) when nothing else fits).
- Skill balance (soft): some split of the four into two sides must keep the side-sum
  difference within max_skill_level_difference.
- Anti-repetition: the same four never play twice in one round, never return to the court
  they were the last team on, and a four used twice is only picked as a last resort.
- Preferences: 'preferred' pairs are rewarded, 'avoided' pairs penalized.

The engine never mutates its inputs. The caller applies each game's result
(games_played += 1, last_played_round = round) before asking for the next game.

CLI:
  python3 scheduler.py --input players.json --games 8 --seed 42 --output-md outputs/play_order.md --debug
"""

from __future__ import annotations
import argparse
import dataclasses
import itertools
import json
import logging
import math
import os
import random
import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

PREFERRED = "preferred"
AVOIDED = "avoided"

# Priority weights. Each rule dominates the ones below it.
PENALTY_RUNAWAY = 10_000
PENALTY_UNPLAYED_FIRST = 5_000
WEIGHT_GAMES = 1_000
WEIGHT_WAITING = 100
BONUS_MUST_PLAY = 500
BONUS_BALANCE = 300

# Team score weights
SCORE_WAITING = 10.0
SCORE_GAMES = 10.0
SCORE_GAMES_VARIANCE = 20.0
SCORE_SIDE_DIFF = 5.0
SCORE_REPEAT = 20.0
BONUS_PREFERRED = 15.0
PENALTY_AVOIDED = 30.0

# Candidates considered by the slice strategies
SLICE_WINDOW = 8

# --------------------------------------------------------------------------- #
# Errors
# --------------------------------------------------------------------------- #

class SchedulerError(Exception):
    """Base class for scheduler failures."""


class InvalidArgumentError(SchedulerError, ValueError):
    """A game, round, court count or tunable is out of range."""

# --------------------------------------------------------------------------- #
# Data model
# --------------------------------------------------------------------------- #

@dataclasses.dataclass
class PlayerPreference:
    player_id: str
    kind: str  # 'preferred' | 'avoided'

    def __post_init__(self) -> None:
        if self.kind not in (PREFERRED, AVOIDED):
            raise InvalidArgumentError(f"unknown preference kind: {self.kind!r}")

@dataclasses.dataclass
class Participant:
    id: str
    name: str
    skill_level: int
    games_played: int = 0
    last_played_round: int = 0  # 0 = never played
    rotation_priority: Optional[int] = None  # manual override, small tiebreak
    preferences: List[PlayerPreference] = dataclasses.field(default_factory=list)

@dataclasses.dataclass
class Court:
    id: str
    name: str
    is_active: bool = True

@dataclasses.dataclass(frozen=True)
class GameAllocation:
    court_id: str
    court_name: str
    players: Tuple[Participant, ...]
    average_skill_level: float
    game_number: int

    def player_ids(self) -> List[str]:
        return [p.id for p in self.players]

@dataclasses.dataclass
class AllocationConstraints:
    max_skill_level_difference: int = 3  # between the two sides of a court
    players_per_court: int = 4
    max_games_difference: int = 1
    min_games_in_second_round: int = 1  # per two rounds
    enforce_every_two_rounds: bool = True
    max_skill_gap: int = 6  # inside one team, reported by the validator
    max_combination_attempts: int = 100

    def validate(self) -> None:
        _check_range("max_skill_level_difference", self.max_skill_level_difference, 0, 20)
        _check_range("players_per_court", self.players_per_court, 2, 8)
        if self.players_per_court % 2:
            raise InvalidArgumentError("players_per_court must be even (two sides per court)")
        _check_range("max_games_difference", self.max_games_difference, 1, 10)
        _check_range("min_games_in_second_round", self.min_games_in_second_round, 0, 10)
        if not isinstance(self.enforce_every_two_rounds, bool):
            raise InvalidArgumentError(
                f"enforce_every_two_rounds must be true or false, got {self.enforce_every_two_rounds!r}")
        _check_range("max_skill_gap", self.max_skill_gap, 0, 20)
        _check_range("max_combination_attempts", self.max_combination_attempts, 1, 1000)

@dataclasses.dataclass
class SessionConfig:
    courts: List[Court]
    players: List[Participant]
    constraints: AllocationConstraints = dataclasses.field(default_factory=AllocationConstraints)

def _check_range(name: str, value: int, lo: int, hi: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not (lo <= value <= hi):
        raise InvalidArgumentError(f"{name} must be an integer in [{lo}, {hi}], got {value!r}")

# --------------------------------------------------------------------------- #
# Load config (JSON/MD from app.py)
# --------------------------------------------------------------------------- #

def load_constraints(d: Optional[Dict]) -> AllocationConstraints:
    """Build constraints from a JSON object; unknown keys are ignored."""
    names = {f.name for f in dataclasses.fields(AllocationConstraints)}
    c = AllocationConstraints(**{k: v for k, v in (d or {}).items() if k in names})
    c.validate()
    return c

def participant_from_dict(d: Dict) -> Participant:
    prefs = [PlayerPreference(player_id=str(x["player_id"]), kind=x["kind"])
             for x in d.get("preferences") or []]
    rp = d.get("rotation_priority")
    return Participant(
        id=str(d["id"]),
        name=d["name"],
        skill_level=int(d["skill_level"]),
        games_played=int(d.get("games_played", 0)),
        last_played_round=int(d.get("last_played_round", 0)),
        rotation_priority=None if rp is None else int(rp),
        preferences=prefs,
    )

def courts_from_json(raw) -> List[Court]:
    # either a count or a list of court objects
    if isinstance(raw, int):
        return [Court(id=str(i), name=f"Court {i}") for i in range(1, raw + 1)]
    return [Court(id=str(c["id"]), name=c.get("name", f"Court {c['id']}"),
                  is_active=bool(c.get("is_active", True))) for c in raw]

def load_config(path: str) -> SessionConfig:
    if path.endswith(".json"):
        with open(path, "r", encoding="utf-8") as f:
            d = json.load(f)
        return SessionConfig(
            courts=courts_from_json(d["courts"]),
            players=[participant_from_dict(p) for p in d["players"]],
            constraints=load_constraints(d.get("constraints")),
        )
    elif path.endswith(".md"):
        return _load_md_minimal(path)
    else:
        raise ValueError("Provide a .json or .md produced by app.py")

def _load_md_minimal(path: str) -> SessionConfig:
    with open(path, "r", encoding="utf-8") as f:
        lines = f.readlines()
    court_no = 1
    for line in lines:
        m = re.match(r"^courts:\s*(\d+)", line.strip())
        if m:
            court_no = int(m.group(1))
    players: List[Participant] = []
    in_table = False
    for line in lines:
        if line.strip().startswith("| Id |"):
            in_table = True
            continue
        if in_table:
            if not line.strip().startswith("|"):
                break
            cells = [c.strip() for c in line.strip().strip("|").split("|")]
            if len(cells) < 5 or not cells[2].isdigit():
                continue  # separator row
            prefs = [PlayerPreference(x.strip(), PREFERRED) for x in cells[3].split(",") if x.strip()]
            prefs += [PlayerPreference(x.strip(), AVOIDED) for x in cells[4].split(",") if x.strip()]
            players.append(Participant(id=cells[0], name=cells[1], skill_level=int(cells[2]),
                                       preferences=prefs))
    return SessionConfig(courts=courts_from_json(court_no), players=players)

# --------------------------------------------------------------------------- #
# Round arithmetic
# --------------------------------------------------------------------------- #

def calculate_round(game: int, courts_count: int) -> int:
    if game <= 0:
        raise InvalidArgumentError(f"game number must be positive, got {game}")
    if courts_count <= 0:
        raise InvalidArgumentError(f"courts count must be positive, got {courts_count}")
    return (game - 1) // courts_count + 1

def get_round_range(round_no: int, courts_count: int) -> Tuple[int, int]:
    """Inclusive range of game numbers that make up `round_no`."""
    if round_no <= 0:
        raise InvalidArgumentError(f"round must be positive, got {round_no}")
    if courts_count <= 0:
        raise InvalidArgumentError(f"courts count must be positive, got {courts_count}")
    return (round_no - 1) * courts_count + 1, round_no * courts_count

# --------------------------------------------------------------------------- #
# Pairing history
# --------------------------------------------------------------------------- #

def team_key(ids: Iterable[str]) -> str:
    return "-".join(sorted(str(i) for i in ids))

@dataclasses.dataclass
class PairingRecord:
    key: str
    players: Tuple[str, ...]
    count: int = 0
    last_used_game: int = 0
    last_used_court: Optional[str] = None

class PairingHistoryTracker:
    """How often each exact team played, and where it played last.

    Besides the per-team records this keeps the most recent team of every
    court, so "last team on this court" survives games played elsewhere.
    """

    def __init__(self) -> None:
        self._records: Dict[str, PairingRecord] = {}
        self._court_last: Dict[str, Tuple[str, int]] = {}  # court id -> (team key, game)

    def __len__(self) -> int:
        return len(self._records)

    def record_team_pairing(self, ids: Sequence[str], game: int, court_id: str) -> PairingRecord:
        key = team_key(ids)
        rec = self._records.get(key)
        if rec is None:
            rec = PairingRecord(key=key, players=tuple(sorted(str(i) for i in ids)))
            self._records[key] = rec
        rec.count += 1
        rec.last_used_game = game
        rec.last_used_court = court_id
        self._court_last[court_id] = (key, game)
        return rec

    def get_record(self, ids: Sequence[str]) -> Optional[PairingRecord]:
        return self._records.get(team_key(ids))

    def pairing_count(self, ids: Sequence[str]) -> int:
        rec = self._records.get(team_key(ids))
        return rec.count if rec else 0

    def last_team_on_court(self, court_id: str) -> Optional[str]:
        last = self._court_last.get(court_id)
        return last[0] if last else None

    def is_consecutive_same_team_on_same_court(self, ids: Sequence[str], court_id: str,
                                               game: int, courts_count: int) -> bool:
        rec = self._records.get(team_key(ids))
        if rec is None:
            return False
        # same four already played somewhere this round
        if calculate_round(rec.last_used_game, courts_count) == calculate_round(game, courts_count):
            return True
        if rec.last_used_court != court_id:
            return False
        return self.last_team_on_court(court_id) == rec.key

    def reset_for_new_session(self) -> None:
        self._records.clear()
        self._court_last.clear()

# --------------------------------------------------------------------------- #
# Priority
# --------------------------------------------------------------------------- #

@dataclasses.dataclass
class PriorityView:
    """One participant scored for one game.

    can_play_this_game is reported for callers and forecasts only; the
    selector filters on projected games instead, so a player flagged False
    can still be picked when the pool leaves no other way to fill a court.
    """
    participant: Participant
    waiting_games: int
    can_play_this_game: bool
    current_round: int
    priority_score: float
    must_play: bool = False
    needs_balance: bool = False

    @property
    def id(self) -> str: return self.participant.id
    @property
    def games_played(self) -> int: return self.participant.games_played
    @property
    def skill_level(self) -> int: return self.participant.skill_level

class PriorityEngine:
    def __init__(self, constraints: AllocationConstraints):
        self.c = constraints

    @staticmethod
    def waiting_games(p: Participant, game: int, courts_count: int) -> int:
        if p.last_played_round <= 0:
            return max(0, game - 1)
        last_game = (p.last_played_round - 1) * courts_count + 1
        return max(0, game - last_game - 1)

    def required_games(self, current_round: int) -> int:
        """Games everybody must have by now under the every-two-rounds rule."""
        if not self.c.enforce_every_two_rounds or current_round < 2:
            return 0
        return self.c.min_games_in_second_round * (current_round // 2)

    def compute(self, participants: Sequence[Participant], game: int,
                courts_count: int) -> List[PriorityView]:
        """Score everyone for `game`; returned best first."""
        current_round = calculate_round(game, courts_count)
        if not participants:
            return []
        games = [p.games_played for p in participants]
        pool_min, pool_max = min(games), max(games)
        spread = pool_max - pool_min
        required = self.required_games(current_round)

        views: List[PriorityView] = []
        for p in participants:
            waiting = self.waiting_games(p, game, courts_count)
            score = 0.0
            if p.games_played - pool_min > 1:
                score += PENALTY_RUNAWAY
            if pool_min == 0 and p.games_played >= 1:
                score += PENALTY_UNPLAYED_FIRST
            score += p.games_played * WEIGHT_GAMES
            score -= waiting * WEIGHT_WAITING
            must_play = p.games_played < required
            if must_play:
                score -= BONUS_MUST_PLAY
            needs_balance = spread >= self.c.max_games_difference and p.games_played == pool_min
            if needs_balance:
                score -= BONUS_BALANCE
            if p.rotation_priority is not None:
                score += p.rotation_priority
            views.append(PriorityView(
                participant=p,
                waiting_games=waiting,
                can_play_this_game=must_play or needs_balance or p.games_played <= pool_min + 1,
                current_round=current_round,
                priority_score=score,
                must_play=must_play,
                needs_balance=needs_balance,
            ))
        views.sort(key=lambda v: v.priority_score)
        return views

# --------------------------------------------------------------------------- #
# Team helpers
# --------------------------------------------------------------------------- #

def best_side_difference(skills: Sequence[int]) -> int:
    """Smallest skill-sum difference over all splits into two equal sides."""
    n = len(skills)
    if n < 2:
        return 0
    total = sum(skills)
    best: Optional[int] = None
    # fix the first player on side A so mirrored splits are not counted twice
    for combo in itertools.combinations(range(1, n), n // 2 - 1):
        side = skills[0] + sum(skills[i] for i in combo)
        diff = abs(total - 2 * side)
        if best is None or diff < best:
            best = diff
    return best or 0

def is_skill_balanced(skills: Sequence[int], max_difference: int) -> bool:
    return best_side_difference(skills) <= max_difference

def preference_score(players: Sequence[Participant]) -> float:
    ids = {p.id for p in players}
    score = 0.0
    for p in players:
        for pref in p.preferences:
            if pref.player_id == p.id or pref.player_id not in ids:
                continue
            score += BONUS_PREFERRED if pref.kind == PREFERRED else -PENALTY_AVOIDED
    return score

def games_spread(games: Dict[str, int], bumped: Iterable[str] = ()) -> int:
    """Pool-wide max-min games, with `bumped` ids counted one game further."""
    bumped = set(bumped)
    values = [g + 1 if pid in bumped else g for pid, g in games.items()]
    return max(values) - min(values) if values else 0

# --------------------------------------------------------------------------- #
# Candidate strategies
# --------------------------------------------------------------------------- #

def _nth_combination(ordered: Sequence[PriorityView], size: int, n: int) -> List[PriorityView]:
    head = list(ordered[:max(size, SLICE_WINDOW)])
    if len(head) < size:
        return []
    total = math.comb(len(head), size)
    return list(next(itertools.islice(itertools.combinations(head, size), n % total, None)))

class TeamCandidateStrategy:
    """Proposes one candidate team per call; `n` counts this strategy's own calls."""
    name = "base"

    def propose(self, views: Sequence[PriorityView], size: int, n: int,
                rng: random.Random) -> List[PriorityView]:
        raise NotImplementedError

class PrioritySliceStrategy(TeamCandidateStrategy):
    """Walk the combinations of the best-scored few, best first."""
    name = "priority-slice"

    def propose(self, views, size, n, rng):
        ordered = sorted(views, key=lambda v: v.priority_score)
        return _nth_combination(ordered, size, n)

class WaitingGamesStrategy(TeamCandidateStrategy):
    name = "waiting-games"

    def propose(self, views, size, n, rng):
        ordered = sorted(views, key=lambda v: (-v.waiting_games, v.games_played, v.priority_score))
        return _nth_combination(ordered, size, n)

class SkillDiversityStrategy(TeamCandidateStrategy):
    """One player from each skill band, the bands shifted by one per call."""
    name = "skill-diversity"

    def propose(self, views, size, n, rng):
        ordered = sorted(views, key=lambda v: (v.skill_level, v.priority_score))
        total = len(ordered)
        if total < size:
            return []
        return [ordered[(n + i * total // size) % total] for i in range(size)]

class RandomShuffleStrategy(TeamCandidateStrategy):
    name = "random"

    def propose(self, views, size, n, rng):
        if len(views) < size:
            return []
        return rng.sample(list(views), size)

def default_strategies() -> List[TeamCandidateStrategy]:
    return [PrioritySliceStrategy(), WaitingGamesStrategy(),
            SkillDiversityStrategy(), RandomShuffleStrategy()]

# --------------------------------------------------------------------------- #
# Team selection
# --------------------------------------------------------------------------- #

@dataclasses.dataclass
class TeamCandidate:
    members: Tuple[PriorityView, ...]
    score: float
    tier: int  # 0 clean, 1 skill-unbalanced, 2 four used twice already

    def ids(self) -> List[str]:
        return [v.id for v in self.members]

    def rank(self) -> Tuple[int, float]:
        return (self.tier, -self.score)

class TeamSelector:
    def __init__(self, constraints: AllocationConstraints, history: PairingHistoryTracker,
                 rng: random.Random, strategies: Optional[Sequence[TeamCandidateStrategy]] = None):
        self.c = constraints
        self.history = history
        self.rng = rng
        self.strategies = list(strategies) if strategies else default_strategies()

    # ---------------- score ---------------- #
    def score_team(self, members: Sequence[PriorityView], repeat_count: int) -> float:
        games = [v.games_played for v in members]
        mean = sum(games) / len(games)
        variance = sum((g - mean) ** 2 for g in games) / len(games)
        score = SCORE_WAITING * sum(v.waiting_games for v in members)
        score -= SCORE_GAMES * sum(games)
        score -= SCORE_GAMES_VARIANCE * variance
        score -= SCORE_SIDE_DIFF * best_side_difference([v.skill_level for v in members])
        score -= SCORE_REPEAT * repeat_count
        score += preference_score([v.participant for v in members])
        return score

    def evaluate(self, members: Sequence[PriorityView], projected: Dict[str, int], court: Court,
                 game: int, courts_count: int, ceiling: int) -> Optional[TeamCandidate]:
        """Score a team, or None if it breaks a hard constraint."""
        ids = [v.id for v in members]
        if len(ids) != self.c.players_per_court or len(set(ids)) != len(ids):
            return None
        if self.history.is_consecutive_same_team_on_same_court(ids, court.id, game, courts_count):
            return None
        if games_spread(projected, ids) > ceiling:
            return None
        repeats = self.history.pairing_count(ids)
        if repeats >= 2:
            tier = 2
        elif not is_skill_balanced([v.skill_level for v in members], self.c.max_skill_level_difference):
            tier = 1
        else:
            tier = 0
        return TeamCandidate(tuple(members), self.score_team(members, repeats), tier)

    # ---------------- eligibility ---------------- #
    def eligible_candidates(self, remaining: Sequence[PriorityView], projected: Dict[str, int]) -> List[PriorityView]:
        size = self.c.players_per_court
        ordered = sorted(remaining, key=lambda v: v.priority_score)
        spread = games_spread(projected)
        threshold = 2 if spread >= 2 else 3
        pool_min = min(projected.values())
        eligible = [v for v in ordered
                    if projected[v.id] == pool_min or games_spread(projected, [v.id]) <= threshold]
        if len(eligible) < size:
            return ordered[:size]
        return eligible

    # ---------------- search ---------------- #
    def _search(self, pool: Sequence[PriorityView], projected, court, game, courts_count,
                ceiling) -> Optional[TeamCandidate]:
        size = self.c.players_per_court
        if len(pool) == size:
            return self.evaluate(pool, projected, court, game, courts_count, ceiling)
        best: Optional[TeamCandidate] = None
        seen = set()
        k = len(self.strategies)
        for attempt in range(self.c.max_combination_attempts):
            strategy = self.strategies[attempt % k]
            members = strategy.propose(pool, size, attempt // k, self.rng)
            if len(members) != size:
                continue
            key = team_key(v.id for v in members)
            if key in seen:
                continue
            seen.add(key)
            cand = self.evaluate(members, projected, court, game, courts_count, ceiling)
            if cand is not None and (best is None or cand.rank() < best.rank()):
                best = cand
        logger.debug("%s: %d distinct candidates tried, best %s", court.name, len(seen),
                     None if best is None else f"tier={best.tier} score={best.score:.1f}")
        return best

    def select_best_team(self, eligible: Sequence[PriorityView], projected: Dict[str, int], court: Court,
                         game: int, courts_count: int, ceiling: int) -> Optional[TeamCandidate]:
        size = self.c.players_per_court
        must = [v for v in eligible if v.must_play]
        if len(must) >= size:
            must.sort(key=lambda v: (-v.waiting_games, v.games_played))
            best = self._search(must, projected, court, game, courts_count, ceiling)
            if best is not None:
                return best
        return self._search(eligible, projected, court, game, courts_count, ceiling)

    def select_for_court(self, remaining: Sequence[PriorityView], projected: Dict[str, int],
                         court: Court, game: int, courts_count: int) -> Optional[TeamCandidate]:
        eligible = self.eligible_candidates(remaining, projected)
        strict = self.c.max_games_difference
        best = self.select_best_team(eligible, projected, court, game, courts_count, strict)
        if best is None:
            relaxed = max(2, strict, games_spread(projected))
            if relaxed > strict:
                logger.debug("%s: relaxing games ceiling %d -> %d", court.name, strict, relaxed)
                best = self.select_best_team(eligible, projected, court, game, courts_count, relaxed)
        return best

    # ---------------- all courts ---------------- #
    def allocate(self, views: Sequence[PriorityView], courts: Sequence[Court], game: int) -> List[GameAllocation]:
        size = self.c.players_per_court
        courts_count = len(courts)
        projected = {v.id: v.games_played for v in views}
        remaining = list(views)
        allocations: List[GameAllocation] = []

        for court in courts:
            if len(remaining) < size:
                logger.info("Game %d: %d players left, %s stays empty", game, len(remaining), court.name)
                break
            best = self.select_for_court(remaining, projected, court, game, courts_count)
            if best is None:
                logger.info("Game %d: no admissible team for %s, court skipped", game, court.name)
                continue
            if best.tier == 1:
                logger.warning("Game %d: %s gets a skill-unbalanced team %s", game, court.name, best.ids())

            ids = best.ids()
            self.history.record_team_pairing(ids, game, court.id)
            for pid in ids:
                projected[pid] += 1
            chosen = set(ids)
            remaining = [v for v in remaining if v.id not in chosen]

            players = tuple(v.participant for v in best.members)
            avg = sum(p.skill_level for p in players) / len(players)
            allocations.append(GameAllocation(
                court_id=court.id,
                court_name=court.name,
                players=players,
                average_skill_level=round(avg, 1),
                game_number=game,
            ))
        return allocations

# --------------------------------------------------------------------------- #
# Engine
# --------------------------------------------------------------------------- #

@dataclasses.dataclass
class RotationForecast:
    next_up: List[str]
    waiting: List[str]
    estimated_wait_rounds: Dict[str, int]

class TeamAllocationEngine:
    """Stateful allocator for one session. Not reentrant; use one per session."""

    def __init__(self, constraints: Optional[AllocationConstraints] = None, seed: Optional[int] = None,
                 rng: Optional[random.Random] = None,
                 strategies: Optional[Sequence[TeamCandidateStrategy]] = None):
        self._constraints = dataclasses.replace(constraints) if constraints else AllocationConstraints()
        self._constraints.validate()
        self.rng = rng if rng is not None else random.Random(seed)
        self.history = PairingHistoryTracker()
        self._strategies = list(strategies) if strategies else default_strategies()

    # ---------------- configuration ---------------- #
    def get_constraints(self) -> AllocationConstraints:
        return dataclasses.replace(self._constraints)

    def set_constraints(self, constraints: AllocationConstraints) -> None:
        constraints.validate()
        self._constraints = dataclasses.replace(constraints)

    constraints = property(get_constraints, set_constraints)

    # ---------------- rounds ---------------- #
    @staticmethod
    def calculate_round(game: int, courts_count: int) -> int:
        return calculate_round(game, courts_count)

    @staticmethod
    def get_round_range(round_no: int, courts_count: int) -> Tuple[int, int]:
        return get_round_range(round_no, courts_count)

    # ---------------- history ---------------- #
    def record_team_pairing(self, ids: Sequence[str], game: int, court_id: str) -> PairingRecord:
        return self.history.record_team_pairing(ids, game, court_id)

    def is_consecutive_same_team_on_same_court(self, ids: Sequence[str], court_id: str,
                                               game: int, courts_count: int) -> bool:
        return self.history.is_consecutive_same_team_on_same_court(ids, court_id, game, courts_count)

    def reset_for_new_session(self) -> None:
        logger.info("Session reset: dropping %d pairing records", len(self.history))
        self.history.reset_for_new_session()

    def forget_history(self) -> None:
        """Drop pairing history but keep the session, e.g. before replaying a log."""
        logger.debug("Clearing %d pairing records for replay", len(self.history))
        self.history.reset_for_new_session()

    # ---------------- allocation ---------------- #
    def priorities(self, participants: Sequence[Participant], game_number: int,
                   courts_count: int) -> List[PriorityView]:
        return PriorityEngine(self._constraints).compute(participants, game_number, courts_count)

    def allocate_teams(self, participants: Sequence[Participant], courts: Sequence[Court],
                       game_number: int) -> List[GameAllocation]:
        """Pick one team per active court for `game_number`.

        Returns allocations in court order; an empty list means no team could
        be formed. Pairing history is updated for every returned team.
        """
        if game_number <= 0:
            raise InvalidArgumentError(f"game number must be positive, got {game_number}")
        ids = [p.id for p in participants]
        if len(set(ids)) != len(ids):
            raise InvalidArgumentError("participant ids must be unique")

        active = [c for c in courts if c.is_active]
        size = self._constraints.players_per_court
        if not active or len(participants) < size:
            logger.info("Game %d: insufficient pool (%d players, %d active courts)",
                        game_number, len(participants), len(active))
            return []

        views = self.priorities(participants, game_number, len(active))
        selector = TeamSelector(self._constraints, self.history, self.rng, self._strategies)
        allocations = selector.allocate(views, active, game_number)
        logger.debug("Game %d (round %d): %d/%d courts filled", game_number,
                     calculate_round(game_number, len(active)), len(allocations), len(active))
        return allocations

    def predict_next_rotation(self, participants: Sequence[Participant], courts: Sequence[Court],
                              game_number: int) -> RotationForecast:
        """Who is up for `game_number` and roughly how many rounds the rest wait."""
        active = [c for c in courts if c.is_active]
        capacity = len(active) * self._constraints.players_per_court
        if not active or not participants:
            return RotationForecast([], [p.id for p in participants], {})
        views = self.priorities(participants, game_number, len(active))
        if len(views) <= capacity:
            return RotationForecast([v.id for v in views], [], {})
        waiting = views[capacity:]
        estimate = {v.id: min(math.ceil((i + 1) / capacity), len(active))
                    for i, v in enumerate(waiting)}
        return RotationForecast([v.id for v in views[:capacity]], [v.id for v in waiting], estimate)

def apply_allocations(participants: Sequence[Participant], allocations: Sequence[GameAllocation],
                      courts_count: int) -> List[Participant]:
    """Caller-side bookkeeping: copies of `participants` with the played games applied."""
    played: Dict[str, int] = {}
    for a in allocations:
        rnd = calculate_round(a.game_number, courts_count)
        for pid in a.player_ids():
            played[pid] = rnd
    out: List[Participant] = []
    for p in participants:
        if p.id in played:
            out.append(dataclasses.replace(p, games_played=p.games_played + 1,
                                           last_played_round=played[p.id]))
        else:
            out.append(p)
    return out

# --------------------------------------------------------------------------- #
# CLI
# --------------------------------------------------------------------------- #

def main():
    # imported here: stats builds on the types above
    import stats

    ap = argparse.ArgumentParser(description="Court rotation – simulate a session of allocated games")
    ap.add_argument("--input", required=True, help="players.json or players.md from app.py")
    ap.add_argument("--games", type=int, default=8, help="number of games to allocate")
    ap.add_argument("--seed", type=int, default=42, help="random seed")
    ap.add_argument("--output-md", help="write the play order to this Markdown file")
    ap.add_argument("--debug", action="store_true", help="debug logging + summary")
    args = ap.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO,
                        format="%(asctime)s - %(levelname)s - %(message)s")

    cfg = load_config(args.input)
    engine = TeamAllocationEngine(cfg.constraints, seed=args.seed)
    courts_count = sum(1 for c in cfg.courts if c.is_active)
    players = list(cfg.players)
    played: List[List[GameAllocation]] = []
    for game in range(1, args.games + 1):
        allocations = engine.allocate_teams(players, cfg.courts, game)
        played.append(allocations)
        players = apply_allocations(players, allocations, courts_count)

    md = stats.render_allocations_md(cfg, played)
    print(md)
    if args.output_md:
        os.makedirs(os.path.dirname(args.output_md) or ".", exist_ok=True)
        with open(args.output_md, "w", encoding="utf-8") as f:
            f.write(md)
        print(f"Saved: {os.path.abspath(args.output_md)}")

    if args.debug:
        last_round = calculate_round(max(1, args.games), max(1, courts_count))
        stats.print_debug_summary(players, played, last_round + 1, engine.get_constraints())

if __name__ == "__main__":
    main()
