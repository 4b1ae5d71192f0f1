import pytest
from helpers import make_courts, make_players

import stats
from scheduler import AllocationConstraints, GameAllocation, Participant, SessionConfig


def allocation(skills, game=1, court="Court 1"):
    players = tuple(Participant(str(i), f"P{i}", s) for i, s in enumerate(skills))
    return GameAllocation(court_id=court.lower().replace(" ", "-"), court_name=court, players=players,
                          average_skill_level=round(sum(skills) / len(skills), 1), game_number=game)


def player(pid, games, last_round):
    return Participant(pid, f"P{pid}", 5, games_played=games, last_played_round=last_round)


# ---------------- validation ---------------- #

def test_balanced_team_is_valid():
    res = stats.validate_allocation(allocation([4, 5, 5, 6]))
    assert res.is_valid
    assert res.violations == []


def test_skill_spread_and_side_balance_violations():
    res = stats.validate_allocation(allocation([1, 2, 3, 10]))
    assert not res.is_valid
    assert "skill spread too large: 9 (max allowed: 6)" in res.violations
    assert any(v.startswith("no balanced split") for v in res.violations)


def test_wrong_team_size():
    res = stats.validate_allocation(allocation([5, 5, 5]))
    assert res.violations[0] == "wrong team size: 3/4"


def test_duplicate_player_reported():
    p = Participant("1", "Ann", 5)
    a = GameAllocation("c1", "Court 1", (p, p, Participant("2", "Bo", 5), Participant("3", "Cy", 5)), 5.0, 1)
    assert "duplicate players on Court 1" in stats.validate_allocation(a).violations


def test_custom_constraints_loosen_the_check():
    c = AllocationConstraints(max_skill_level_difference=6, max_skill_gap=9)
    assert stats.validate_allocation(allocation([1, 2, 3, 10]), c).is_valid


def test_games_difference():
    players = [player("a", 3, 3), player("b", 1, 2), player("c", 2, 3)]
    res = stats.validate_games_difference(players, 1)
    assert not res.is_valid
    assert res.max_difference == 2
    assert len(res.violations) == 3
    assert "Pa" in res.violations[1] and "Pb" in res.violations[2]
    assert stats.validate_games_difference(players, 2).is_valid
    assert stats.validate_games_difference([], 1).max_difference == 0


def test_every_two_rounds_rule():
    players = [player("a", 2, 4), player("b", 1, 3)]
    res = stats.validate_every_two_rounds_rule(players, 4)
    assert res.violations == ["Pb has 1 games after round 4 (needs 2)"]
    assert stats.validate_every_two_rounds_rule(players, 1).is_valid
    off = AllocationConstraints(enforce_every_two_rounds=False)
    assert stats.validate_every_two_rounds_rule(players, 4, off).is_valid


# ---------------- statistics ---------------- #

def test_allocation_stats_even_courts():
    st = stats.get_allocation_stats([allocation([5, 5, 5, 5]), allocation([4, 6, 5, 5], court="Court 2")])
    assert st.total_players == 8
    assert st.average_skill_level == 5.0
    assert st.skill_level_distribution == {4: 1, 5: 6, 6: 1}
    assert st.balance_score == 10.0


def test_allocation_stats_uneven_courts():
    st = stats.get_allocation_stats([allocation([4, 4, 4, 4]), allocation([6, 6, 6, 6], court="Court 2")])
    assert st.balance_score == 9.0


def test_allocation_stats_empty():
    st = stats.get_allocation_stats([])
    assert st.total_players == 0
    assert st.skill_level_distribution == {}


def test_rotation_stats():
    players = [player("a", 2, 2), player("b", 2, 2), player("c", 1, 1), player("d", 1, 1)]
    rs = stats.get_rotation_stats(players, 3)
    assert rs.fairness_score == 8.0
    assert rs.max_games_difference == 1
    assert rs.average_wait_time == 1.5
    assert rs.rotation_efficiency == 7.0


def test_rotation_stats_empty_pool():
    rs = stats.get_rotation_stats([], 1)
    assert rs.fairness_score == 10.0
    assert rs.rotation_efficiency == 10.0


def test_fairness_floor_is_zero():
    rs = stats.get_rotation_stats([player("a", 9, 5), player("b", 0, 0)], 6)
    assert rs.fairness_score == 0.0


def test_detailed_stats():
    players = [player(str(i), 2, 2) for i in range(6)] + [player("x", 0, 0), player("y", 0, 0)]
    ds = stats.get_detailed_stats(players, 3)
    assert ds.total_participants == 8
    assert ds.consecutive_players_count == 6
    assert ds.needs_catch_up_count == 2
    assert ds.rotation_health_score == pytest.approx(1.2)


def test_detailed_stats_empty():
    assert stats.get_detailed_stats([], 1).rotation_health_score == 10.0


# ---------------- render ---------------- #

def test_render_allocations_md():
    cfg = SessionConfig(courts=make_courts(2), players=make_players(8))
    games = [[allocation([5, 5, 5, 5]), allocation([1, 2, 3, 10], court="Court 2")], []]
    md = stats.render_allocations_md(cfg, games)
    assert md.startswith("# Play Order")
    assert "Courts: 2 active | Players: 8 | Team size: 4" in md
    assert "| Game | Court | Players | Avg skill | Check |" in md
    assert "| 1 | Court 1 | P0(5), P1(5), P2(5), P3(5) | 5.0 | ok |" in md
    assert "skill spread too large" in md


def test_print_debug_summary(capsys):
    players = [player("a", 1, 1), player("b", 1, 1), player("c", 1, 1), player("d", 1, 1)]
    stats.print_debug_summary(players, [[allocation([5, 5, 5, 5])]], 2, AllocationConstraints())
    out = capsys.readouterr().out
    assert "DEBUG SUMMARY" in out
    assert "Repeated teams: none" in out
    assert "Fairness 10.0" in out
