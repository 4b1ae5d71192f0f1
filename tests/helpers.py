from scheduler import Court, Participant


def make_players(n, skill=5, **kwargs):
    return [Participant(id=str(i), name=f"P{i}", skill_level=skill, **kwargs) for i in range(1, n + 1)]


def make_courts(n):
    return [Court(id=f"court-{i}", name=f"Court {i}") for i in range(1, n + 1)]
