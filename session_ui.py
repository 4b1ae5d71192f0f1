#!/usr/bin/env python3
"""
Session UI (v4)
- Proposes one game at a time (one team per active court).
- After each game you confirm whether it was played; only confirmed games are
  logged and counted (games played +1, last played round).
- Resumes from the previous session log if the roster hasn't changed (opt-in).
- 'reset' starts fairness tracking from zero: counters, pairing history and log.
"""

import dataclasses
import json
import logging
import os
import sys
from datetime import datetime
from typing import Any, Dict, List, Tuple

# Import local scheduler
import scheduler
import stats
from scheduler import Court, GameAllocation, Participant, SessionConfig, TeamAllocationEngine

PLAYERS_JSON = "players.json"
OUTPUT_DIR = "outputs"
LOG_JSON = os.path.join(OUTPUT_DIR, "session_log.jsonl")       # append-only JSONL
LAST_PLAYERS_SNAPSHOT = os.path.join(OUTPUT_DIR, "players_snapshot.json")

logger = logging.getLogger(__name__)

# ---------- Utilities ----------

def ensure_outputs_dir():
    os.makedirs(OUTPUT_DIR, exist_ok=True)

def load_players_json(path: str) -> SessionConfig:
    if not os.path.exists(path):
        print(f"[ERROR] {path} not found. Run app.py first.")
        sys.exit(1)
    return scheduler.load_config(path)

def roster_snapshot(cfg: SessionConfig) -> Dict[str, Any]:
    return {
        "courts": [c.id for c in cfg.courts if c.is_active],
        "players": [{"id": p.id, "name": p.name} for p in cfg.players],
    }

def same_player_roster(cfg: SessionConfig, snapshot_path: str) -> bool:
    if not os.path.exists(snapshot_path):
        return False
    try:
        with open(snapshot_path, "r", encoding="utf-8") as f:
            snap = json.load(f)
    except (OSError, json.JSONDecodeError):
        return False
    cur = roster_snapshot(cfg)
    return snap.get("players") == cur["players"] and snap.get("courts") == cur["courts"]

def save_players_snapshot(cfg: SessionConfig, snapshot_path: str):
    data = roster_snapshot(cfg)
    data["saved_at"] = datetime.now().isoformat(timespec="seconds")
    with open(snapshot_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)

def parse_log_games(log_path: str) -> List[Dict[str, Any]]:
    entries = []
    if not os.path.exists(log_path):
        return entries
    with open(log_path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                obj = json.loads(line)
            except json.JSONDecodeError:
                logger.warning("Skipping unreadable log line: %s", line[:60])
                continue
            if obj.get("type") == "court":
                entries.append(obj)
    return entries

def apply_log(engine: TeamAllocationEngine, players: List[Participant],
              past: List[Dict[str, Any]], courts_count: int) -> List[Participant]:
    """Replay played courts: warm the pairing history and the per-player counters."""
    by_id = {p.id: p for p in players}
    for e in past:
        game, court_id, ids = e["game"], e["court_id"], e["players"]
        engine.record_team_pairing(ids, game, court_id)
        rnd = scheduler.calculate_round(game, courts_count)
        for pid in ids:
            p = by_id.get(pid)
            if p is not None:
                by_id[pid] = dataclasses.replace(p, games_played=p.games_played + 1,
                                                 last_played_round=rnd)
    return [by_id[p.id] for p in players]

def append_log(allocations: List[GameAllocation]):
    with open(LOG_JSON, "a", encoding="utf-8") as f:
        for a in allocations:
            obj = {
                "type": "court",
                "ts": datetime.now().isoformat(timespec="seconds"),
                "game": a.game_number,
                "court_id": a.court_id,
                "players": sorted(a.player_ids()),
            }
            f.write(json.dumps(obj) + "\n")

def clear_log():
    if os.path.exists(LOG_JSON):
        os.remove(LOG_JSON)

def show_game(cfg: SessionConfig, allocations: List[GameAllocation]):
    print(stats.render_allocations_md(cfg, [allocations]))

def propose_next(engine: TeamAllocationEngine, players: List[Participant], courts: List[Court],
                 game: int, courts_count: int) -> Tuple[int, List[GameAllocation]]:
    """First game from `game` on that fills a court; gives up after a full round of empty games."""
    for _ in range(max(1, courts_count)):
        allocations = engine.allocate_teams(players, courts, game)
        if allocations:
            return game, allocations
        print(f"[INFO] No team fits game {game}; moving on to game {game + 1}.")
        game += 1
    return game, []

# ---------- Main Flow ----------

def main():
    print("=== Session Setup ===")
    ensure_outputs_dir()
    cfg = load_players_json(PLAYERS_JSON)
    active = [c for c in cfg.courts if c.is_active]
    print(f"Active courts: {len(active)}, Players: {len(cfg.players)}")

    try:
        seed = int(input("Random seed [blank = random]: ").strip())
    except ValueError:
        seed = None
    debug = (input("Debug mode? [y/N]: ").strip().lower() == "y")
    logging.basicConfig(level=logging.DEBUG if debug else logging.WARNING,
                        format="%(asctime)s - %(levelname)s - %(message)s")

    engine = TeamAllocationEngine(cfg.constraints, seed=seed)
    players = [dataclasses.replace(p, games_played=0, last_played_round=0) for p in cfg.players]

    # Resume logic: only if roster unchanged AND user opts-in
    if same_player_roster(cfg, LAST_PLAYERS_SNAPSHOT) and os.path.exists(LOG_JSON):
        yn = input("Resume from previous session log? [Y/n]: ").strip().lower()
        if yn in ("", "y", "yes"):
            past = parse_log_games(LOG_JSON)
            players = apply_log(engine, players, past, len(active))
            print(f"[INFO] Resumed {len(past)} played courts from the log.")
        else:
            clear_log()
    elif os.path.exists(LOG_JSON):
        print("[INFO] Roster changed or no snapshot — clearing old session log.")
        clear_log()
    save_players_snapshot(cfg, LAST_PLAYERS_SNAPSHOT)

    past = parse_log_games(LOG_JSON)
    game = max((e["game"] for e in past), default=0) + 1

    # ===== Loop: allocate -> confirm -> apply =====
    while True:
        game, allocations = propose_next(engine, players, cfg.courts, game, len(active))
        if not allocations:
            print(f"[WARN] No teams could be formed for a whole round up to game {game - 1}. "
                  "Change the roster or courts.")
            break
        print(f"\n>>> Game {game} (round {scheduler.calculate_round(game, len(active))})\n")
        show_game(cfg, allocations)

        raw = input("Played? [Y]es / [n]o / [r]eset session / [q]uit: ").strip().lower()
        if raw in ("q", "quit"):
            break
        if raw in ("r", "reset"):
            engine.reset_for_new_session()
            players = [dataclasses.replace(p, games_played=0, last_played_round=0) for p in players]
            clear_log()
            game = 1
            print("Session reset.")
            continue
        if raw in ("n", "no"):
            # the proposal never happened; rebuild history from the log without it
            engine.forget_history()
            players = [dataclasses.replace(p, games_played=0, last_played_round=0) for p in players]
            players = apply_log(engine, players, parse_log_games(LOG_JSON), len(active))
            print("Not recorded.")
            continue

        append_log(allocations)
        players = scheduler.apply_allocations(players, allocations, len(active))
        if debug:
            rs = stats.get_rotation_stats(players, scheduler.calculate_round(game, len(active)) + 1)
            print(f"[DEBUG] fairness {rs.fairness_score}, spread {rs.max_games_difference}, "
                  f"efficiency {rs.rotation_efficiency}")
        game += 1

    print("\nSession complete. Have a great one! 👏")

if __name__ == "__main__":
    main()
