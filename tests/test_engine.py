import logging

import pytest
from helpers import make_courts, make_players

from scheduler import (
    AVOIDED,
    AllocationConstraints,
    Court,
    InvalidArgumentError,
    Participant,
    PlayerPreference,
    TeamAllocationEngine,
    apply_allocations,
    calculate_round,
    team_key,
)


def run_session(engine, players, courts, games):
    """Allocate `games` games back to back, applying each result."""
    active = sum(1 for c in courts if c.is_active)
    played = []
    for game in range(1, games + 1):
        allocations = engine.allocate_teams(players, courts, game)
        played.append(allocations)
        players = apply_allocations(players, allocations, active)
    return played, players


# ---------------- inputs ---------------- #

def test_too_few_players_gives_empty_result(engine):
    assert engine.allocate_teams(make_players(3), make_courts(2), 1) == []


def test_no_active_courts_gives_empty_result(engine):
    courts = [Court("c1", "Court 1", is_active=False)]
    assert engine.allocate_teams(make_players(8), courts, 1) == []
    assert engine.allocate_teams(make_players(8), [], 1) == []


@pytest.mark.parametrize("game", [0, -3])
def test_non_positive_game_number_raises(engine, game):
    with pytest.raises(InvalidArgumentError):
        engine.allocate_teams(make_players(8), make_courts(2), game)


def test_duplicate_ids_raise(engine):
    players = make_players(4) + [Participant("1", "Again", 5)]
    with pytest.raises(InvalidArgumentError):
        engine.allocate_teams(players, make_courts(1), 1)


def test_inputs_are_not_mutated(engine, eight_players, two_courts):
    before = [(p.games_played, p.last_played_round) for p in eight_players]
    engine.allocate_teams(eight_players, two_courts, 1)
    assert [(p.games_played, p.last_played_round) for p in eight_players] == before


def test_inactive_courts_are_skipped(engine):
    courts = [Court("c1", "Court 1"), Court("c2", "Court 2", is_active=False), Court("c3", "Court 3")]
    allocations = engine.allocate_teams(make_players(12), courts, 1)
    assert [a.court_id for a in allocations] == ["c1", "c3"]


# ---------------- single game ---------------- #

def test_each_player_on_at_most_one_court(engine):
    allocations = engine.allocate_teams(make_players(11), make_courts(2), 1)
    assert len(allocations) == 2
    ids = [pid for a in allocations for pid in a.player_ids()]
    assert len(ids) == len(set(ids)) == 8
    assert all(a.game_number == 1 for a in allocations)


def test_average_skill_is_rounded(engine):
    players = [Participant(str(i), f"P{i}", s) for i, s in enumerate([3, 4, 4, 4])]
    (allocation,) = engine.allocate_teams(players, make_courts(1), 1)
    assert allocation.average_skill_level == 3.8


def test_unbalanced_team_is_still_allocated(engine, caplog):
    players = [Participant(str(i), f"P{i}", s) for i, s in enumerate([1, 2, 3, 10])]
    with caplog.at_level(logging.WARNING, logger="scheduler"):
        allocations = engine.allocate_teams(players, make_courts(1), 1)
    assert len(allocations) == 1
    assert "skill-unbalanced" in caplog.text


def test_two_player_courts():
    engine = TeamAllocationEngine(AllocationConstraints(players_per_court=2), seed=1)
    allocations = engine.allocate_teams(make_players(4), make_courts(2), 1)
    assert [len(a.players) for a in allocations] == [2, 2]


def test_avoided_pair_kept_apart():
    for seed in range(5):
        players = make_players(6)
        players[0].preferences.append(PlayerPreference("2", AVOIDED))
        engine = TeamAllocationEngine(seed=seed)
        (allocation,) = engine.allocate_teams(players, make_courts(1), 1)
        assert not {"1", "2"} <= set(allocation.player_ids())


def test_late_joiner_gets_on_court():
    players = make_players(7, games_played=5, last_played_round=5)
    players.append(Participant("new", "Newcomer", 5))
    engine = TeamAllocationEngine(seed=3)
    allocations = engine.allocate_teams(players, make_courts(1), 11)
    assert len(allocations) == 1
    assert "new" in allocations[0].player_ids()
    # the others are flagged as too far ahead, yet still fill the court
    flags = {v.id: v.can_play_this_game for v in engine.priorities(players, 11, 1)}
    assert flags["new"] and not flags["1"]


# ---------------- sessions ---------------- #

@pytest.mark.parametrize("seed", range(6))
def test_second_game_of_round_mixes_the_teams(seed, eight_players, two_courts):
    engine = TeamAllocationEngine(seed=seed)
    played, _ = run_session(engine, eight_players, two_courts, 2)
    first = {team_key(a.player_ids()) for a in played[0]}
    second = {team_key(a.player_ids()) for a in played[1]}
    assert len(played[0]) == 2
    assert not first & second


@pytest.mark.parametrize("seed", range(4))
def test_no_team_repeats_within_a_round_or_on_its_court(seed):
    courts = make_courts(2)
    engine = TeamAllocationEngine(seed=seed)
    played, _ = run_session(engine, make_players(10), courts, 16)
    court_last = {}
    team_court = {}
    round_teams = {}
    for allocations in played:
        for a in allocations:
            key = team_key(a.player_ids())
            rnd = calculate_round(a.game_number, len(courts))
            assert key not in round_teams.setdefault(rnd, set())
            round_teams[rnd].add(key)
            assert not (court_last.get(a.court_id) == key and team_court.get(key) == a.court_id)
            court_last[a.court_id] = key
            team_court[key] = a.court_id


@pytest.mark.parametrize("n_players, n_courts", [(10, 2), (13, 3), (8, 1)])
def test_everyone_plays_within_two_rounds(n_players, n_courts):
    engine = TeamAllocationEngine(seed=5)
    _, players = run_session(engine, make_players(n_players), make_courts(n_courts), 2 * n_courts)
    assert min(p.games_played for p in players) >= 1


@pytest.mark.parametrize("seed", range(4))
def test_games_spread_stays_bounded(seed):
    engine = TeamAllocationEngine(seed=seed)
    _, players = run_session(engine, make_players(10), make_courts(2), 12)
    games = [p.games_played for p in players]
    assert max(games) - min(games) <= 2


def test_same_seed_same_session():
    def ids(seed):
        played, _ = run_session(TeamAllocationEngine(seed=seed), make_players(10), make_courts(2), 6)
        return [[a.player_ids() for a in game] for game in played]

    assert ids(11) == ids(11)


def test_blocked_court_is_skipped_and_next_court_filled():
    engine = TeamAllocationEngine(seed=2)
    courts = make_courts(2)
    players = make_players(4)
    (first,) = engine.allocate_teams(players, courts, 1)
    assert first.court_id == "court-1"
    players = apply_allocations(players, [first], 2)
    # the only four already played this round
    assert engine.allocate_teams(players, courts, 2) == []
    # court-1 still holds them as its last team
    allocations = engine.allocate_teams(players, courts, 3)
    assert [a.court_id for a in allocations] == ["court-2"]
    assert team_key(allocations[0].player_ids()) == team_key(first.player_ids())


def test_reset_for_new_session(engine, eight_players, two_courts):
    run_session(engine, eight_players, two_courts, 3)
    assert len(engine.history) > 0
    engine.reset_for_new_session()
    assert len(engine.history) == 0


def test_forget_history_is_quiet(engine, eight_players, two_courts, caplog):
    engine.allocate_teams(eight_players, two_courts, 1)
    with caplog.at_level(logging.INFO, logger="scheduler"):
        engine.forget_history()
    assert len(engine.history) == 0
    assert not [r for r in caplog.records if r.levelno >= logging.INFO]


def test_history_is_recorded(engine, eight_players, two_courts):
    (a, b) = engine.allocate_teams(eight_players, two_courts, 1)
    assert engine.history.pairing_count(a.player_ids()) == 1
    assert engine.is_consecutive_same_team_on_same_court(a.player_ids(), a.court_id, 2, 2)


# ---------------- constraints ---------------- #

def test_constraints_are_copied():
    c = AllocationConstraints(max_games_difference=2)
    engine = TeamAllocationEngine(c)
    c.max_games_difference = 5
    assert engine.get_constraints().max_games_difference == 2
    got = engine.constraints
    got.max_games_difference = 4
    assert engine.constraints.max_games_difference == 2


def test_set_constraints_validates(engine):
    with pytest.raises(InvalidArgumentError):
        engine.set_constraints(AllocationConstraints(players_per_court=3))
    engine.constraints = AllocationConstraints(max_skill_level_difference=5)
    assert engine.get_constraints().max_skill_level_difference == 5


def test_invalid_constraints_rejected_at_construction():
    with pytest.raises(InvalidArgumentError):
        TeamAllocationEngine(AllocationConstraints(max_games_difference=0))


# ---------------- forecast and bookkeeping ---------------- #

def test_predict_next_rotation(engine):
    forecast = engine.predict_next_rotation(make_players(10), make_courts(2), 1)
    assert len(forecast.next_up) == 8
    assert len(forecast.waiting) == 2
    assert set(forecast.estimated_wait_rounds) == set(forecast.waiting)
    assert all(v == 1 for v in forecast.estimated_wait_rounds.values())


def test_predict_next_rotation_small_pool(engine):
    forecast = engine.predict_next_rotation(make_players(5), make_courts(2), 1)
    assert len(forecast.next_up) == 5
    assert forecast.waiting == []
    empty = engine.predict_next_rotation(make_players(5), [], 1)
    assert empty.next_up == [] and len(empty.waiting) == 5


def test_apply_allocations_returns_updated_copies(engine, eight_players, two_courts):
    allocations = engine.allocate_teams(eight_players, two_courts, 3)
    updated = apply_allocations(eight_players, allocations, 2)
    assert all(p.games_played == 1 and p.last_played_round == 2 for p in updated)
    assert all(p.games_played == 0 for p in eight_players)
