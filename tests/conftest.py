import pytest

from helpers import make_courts, make_players
from scheduler import TeamAllocationEngine


@pytest.fixture
def engine():
    return TeamAllocationEngine(seed=7)


@pytest.fixture
def eight_players():
    return make_players(8)


@pytest.fixture
def two_courts():
    return make_courts(2)
