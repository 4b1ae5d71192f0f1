"""
Court Rotation — validation and statistics for allocations and rotation health.

Nothing here raises on a bad allocation: violations are collected and returned
so the caller can show them next to the courts.
"""

from __future__ import annotations
import dataclasses
import logging
import math
from collections import Counter
from typing import Dict, List, Optional, Sequence

from scheduler import (
    AllocationConstraints,
    GameAllocation,
    Participant,
    SessionConfig,
    best_side_difference,
    team_key,
)

logger = logging.getLogger(__name__)

# --------------------------------------------------------------------------- #
# Result types
# --------------------------------------------------------------------------- #

@dataclasses.dataclass
class ValidationResult:
    is_valid: bool
    violations: List[str]

@dataclasses.dataclass
class GamesDifferenceResult:
    is_valid: bool
    max_difference: int
    violations: List[str]

@dataclasses.dataclass
class AllocationStats:
    total_players: int
    average_skill_level: float
    skill_level_distribution: Dict[int, int]
    balance_score: float

@dataclasses.dataclass
class RotationStats:
    fairness_score: float
    max_games_difference: int
    average_wait_time: float
    rotation_efficiency: float

@dataclasses.dataclass
class DetailedStats:
    total_participants: int
    consecutive_players_count: int
    needs_catch_up_count: int
    rotation_health_score: float

def _std(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))

# --------------------------------------------------------------------------- #
# Validation
# --------------------------------------------------------------------------- #

def validate_allocation(allocation: GameAllocation,
                        constraints: Optional[AllocationConstraints] = None) -> ValidationResult:
    c = constraints or AllocationConstraints()
    violations: List[str] = []
    players = allocation.players

    if len(players) != c.players_per_court:
        violations.append(f"wrong team size: {len(players)}/{c.players_per_court}")
    ids = [p.id for p in players]
    if len(set(ids)) != len(ids):
        violations.append(f"duplicate players on {allocation.court_name}")

    if players:
        skills = [p.skill_level for p in players]
        gap = max(skills) - min(skills)
        if gap > c.max_skill_gap:
            violations.append(f"skill spread too large: {gap} (max allowed: {c.max_skill_gap})")
        if len(players) >= 2:
            diff = best_side_difference(skills)
            if diff > c.max_skill_level_difference:
                violations.append(f"no balanced split: best side difference {diff} "
                                  f"(max allowed: {c.max_skill_level_difference})")

    if violations:
        logger.debug("Game %d %s: %s", allocation.game_number, allocation.court_name, "; ".join(violations))
    return ValidationResult(is_valid=not violations, violations=violations)

def validate_games_difference(participants: Sequence[Participant],
                              max_games_difference: int) -> GamesDifferenceResult:
    if not participants:
        return GamesDifferenceResult(True, 0, [])
    games = [p.games_played for p in participants]
    lo, hi = min(games), max(games)
    diff = hi - lo
    violations: List[str] = []
    if diff > max_games_difference:
        violations.append(f"games difference too large: {diff} (max allowed: {max_games_difference})")
        most = ", ".join(p.name for p in participants if p.games_played == hi)
        least = ", ".join(p.name for p in participants if p.games_played == lo)
        violations.append(f"most games ({hi}): {most}")
        violations.append(f"fewest games ({lo}): {least}")
    return GamesDifferenceResult(is_valid=not violations, max_difference=diff, violations=violations)

def validate_every_two_rounds_rule(participants: Sequence[Participant], round_no: int,
                                   constraints: Optional[AllocationConstraints] = None) -> ValidationResult:
    """Everybody must have min_games_in_second_round games per two rounds completed."""
    c = constraints or AllocationConstraints()
    if not c.enforce_every_two_rounds or round_no < 2:
        return ValidationResult(True, [])
    required = c.min_games_in_second_round * (round_no // 2)
    violations = [f"{p.name} has {p.games_played} games after round {round_no} (needs {required})"
                  for p in participants if p.games_played < required]
    return ValidationResult(is_valid=not violations, violations=violations)

# --------------------------------------------------------------------------- #
# Statistics
# --------------------------------------------------------------------------- #

def get_allocation_stats(allocations: Sequence[GameAllocation]) -> AllocationStats:
    players = [p for a in allocations for p in a.players]
    if not players:
        return AllocationStats(0, 0.0, {}, 0.0)
    skills = [p.skill_level for p in players]
    # std of per-court averages on a 10-point scale; higher is more even
    balance = round(10 - _std([a.average_skill_level for a in allocations]), 1)
    return AllocationStats(
        total_players=len(players),
        average_skill_level=round(sum(skills) / len(skills), 1),
        skill_level_distribution=dict(sorted(Counter(skills).items())),
        balance_score=max(0.0, balance),
    )

def get_rotation_stats(participants: Sequence[Participant], current_round: int) -> RotationStats:
    if not participants:
        return RotationStats(10.0, 0, 0.0, 10.0)
    games = [p.games_played for p in participants]
    spread = max(games) - min(games)
    fairness = max(0, 10 - spread * 2)
    avg_wait = sum(current_round - p.last_played_round for p in participants) / len(participants)
    back_to_back = sum(1 for p in participants if p.last_played_round == current_round - 1)
    efficiency = max(0.0, 10 - _std(games) * 2 - min(back_to_back * 1.0, 5))
    return RotationStats(
        fairness_score=round(float(fairness), 1),
        max_games_difference=spread,
        average_wait_time=round(avg_wait, 1),
        rotation_efficiency=round(efficiency, 1),
    )

def get_detailed_stats(participants: Sequence[Participant], current_round: int,
                       courts_count: Optional[int] = None) -> DetailedStats:
    if not participants:
        return DetailedStats(0, 0, 0, 10.0)
    if courts_count is None:
        courts_count = max(1, len(participants) // 8)
    avg_games = sum(p.games_played for p in participants) / len(participants)
    catch_up = max(1, courts_count // 2)
    consecutive = sum(1 for p in participants if p.last_played_round == current_round - 1)
    behind = sum(1 for p in participants if avg_games - p.games_played >= catch_up)
    games = [p.games_played for p in participants]
    spread = max(games) - min(games)
    health = max(0.0, 10 - spread * 2.0 - (consecutive - behind) * 1.2)
    return DetailedStats(
        total_participants=len(participants),
        consecutive_players_count=consecutive,
        needs_catch_up_count=behind,
        rotation_health_score=round(min(10.0, health), 1),
    )

# --------------------------------------------------------------------------- #
# Render & Debug
# --------------------------------------------------------------------------- #

def render_allocations_md(cfg: SessionConfig, games: Sequence[Sequence[GameAllocation]]) -> str:
    c = cfg.constraints
    active = [ct for ct in cfg.courts if ct.is_active]
    lines: List[str] = []
    lines.append("# Play Order\n\n")
    lines.append(f"Courts: {len(active)} active | Players: {len(cfg.players)} | "
                 f"Team size: {c.players_per_court}\n")
    lines.append(f"Side balance: ±{c.max_skill_level_difference} | "
                 f"Games spread ≤ {c.max_games_difference} | "
                 f"Every-two-rounds: {'on' if c.enforce_every_two_rounds else 'off'}\n\n")

    lines.append("| Game | Court | Players | Avg skill | Check |\n")
    lines.append("| ---:|-------|---------|----------:|-------|\n")
    for allocations in games:
        for a in allocations:
            who = ", ".join(f"{p.name}({p.skill_level})" for p in a.players)
            res = validate_allocation(a, c)
            check = "ok" if res.is_valid else "; ".join(res.violations)
            lines.append(f"| {a.game_number} | {a.court_name} | {who} | {a.average_skill_level:.1f} | {check} |\n")

    lines.append("\n")
    return "".join(lines)


def print_debug_summary(players: Sequence[Participant], games: Sequence[Sequence[GameAllocation]],
                        current_round: int, constraints: AllocationConstraints) -> None:
    print("==== DEBUG SUMMARY ====")
    flat = [a for allocations in games for a in allocations]
    print(f"Games allocated: {len(games)}, court slots filled: {len(flat)}")
    skipped = sum(1 for allocations in games if not allocations)
    print(f"Games with no team: {skipped}\n")

    print("Games per player:")
    for p in sorted(players, key=lambda x: (-x.games_played, x.name)):
        print(f"{p.id:>4} {p.name:<12}: {p.games_played:>2} (last round {p.last_played_round})")
    print()

    fours = Counter(team_key(a.player_ids()) for a in flat)
    repeated = [(k, n) for k, n in fours.most_common(12) if n > 1]
    if repeated:
        print("Repeated teams (top):")
        for k, n in repeated:
            print(f"  {k}: {n}x")
    else:
        print("Repeated teams: none")
    print()

    rs = get_rotation_stats(players, current_round)
    print(f"Fairness {rs.fairness_score} | spread {rs.max_games_difference} | "
          f"avg wait {rs.average_wait_time} rounds | efficiency {rs.rotation_efficiency}")
    gd = validate_games_difference(players, constraints.max_games_difference)
    for v in gd.violations:
        print(f"  {v}")
    if flat:
        al = get_allocation_stats(flat)
        print(f"Avg skill on court {al.average_skill_level} | balance {al.balance_score}")
