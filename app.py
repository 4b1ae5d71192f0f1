#!/usr/bin/env python3
"""
Court Rotation – Roster Builder (auto-reset)

What's special in this version:
- Every time you run this file, it WILL DELETE any existing files in the repo root
  that match:  players*.json  and  players*.md
- Then it will recreate fresh  players.json  and  players.md  from your inputs.

Why: run app.py whenever the player base changes; the session starts clean.

No external deps; Python 3.10+.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import re
from pathlib import Path
from typing import Dict, List, Optional

from scheduler import (
    AVOIDED,
    PREFERRED,
    AllocationConstraints,
    Court,
    Participant,
    PlayerPreference,
    SessionConfig,
)

SKILL_MIN, SKILL_MAX = 1, 10

# ---------------------- Markdown helpers ----------------------

def to_markdown(cfg: SessionConfig) -> str:
    lines: List[str] = []
    lines.append("# Players\n\n")
    lines.append(f"courts: {len(cfg.courts)}\n")
    lines.append(f"players: {len(cfg.players)}\n\n")
    lines.append("| Id | Name | Skill | Preferred | Avoided |\n")
    lines.append("|---:|------|------:|-----------|---------|\n")
    for p in cfg.players:
        pref = ",".join(x.player_id for x in p.preferences if x.kind == PREFERRED)
        avoid = ",".join(x.player_id for x in p.preferences if x.kind == AVOIDED)
        lines.append(f"| {p.id} | {p.name} | {p.skill_level} | {pref} | {avoid} |\n")
    lines.append("\n")
    return "".join(lines)

def to_json_dict(cfg: SessionConfig) -> Dict:
    return {
        "courts": [dataclasses.asdict(c) for c in cfg.courts],
        "players": [dataclasses.asdict(p) for p in cfg.players],
        "constraints": dataclasses.asdict(cfg.constraints),
    }

def add_preference(a: Participant, b: Participant, kind: str) -> bool:
    """Record `kind` on both sides. False if either side already has a preference for the other."""
    if any(x.player_id == b.id for x in a.preferences) or any(x.player_id == a.id for x in b.preferences):
        return False
    a.preferences.append(PlayerPreference(b.id, kind))
    b.preferences.append(PlayerPreference(a.id, kind))
    return True

# ---------------------- Interactive input ----------------------

def prompt_int(prompt: str, min_val: int, max_val: int | None = None, default: int | None = None) -> int:
    while True:
        raw = input(f"{prompt}{f' [{default}]' if default is not None else ''}: ").strip()
        if raw == "" and default is not None:
            return default
        if not re.fullmatch(r"\d+", raw):
            print("  Please enter an integer.")
            continue
        val = int(raw)
        if val < min_val or (max_val is not None and val > max_val):
            print(f"  Please enter a value between {min_val} and {max_val or '∞'}.")
            continue
        return val

def prompt_str(prompt: str, choices: List[str] | None = None) -> str:
    while True:
        s = input(f"{prompt}: ").strip()
        if s == "":
            print("  Cannot be empty.")
            continue
        if choices and s.lower() not in [c.lower() for c in choices]:
            print(f"  Please enter one of: {', '.join(choices)}")
            continue
        return s

def collect_players(player_amount: int) -> List[Participant]:
    players: List[Participant] = []
    print(f"\n=== Enter players (skill {SKILL_MIN} = beginner, {SKILL_MAX} = strongest) ===")
    for i in range(1, player_amount + 1):
        name = prompt_str(f"Player {i} name")
        skill = prompt_int("  skill level", SKILL_MIN, SKILL_MAX, default=5)
        players.append(Participant(id=str(i), name=name, skill_level=skill))
    # Optional preferences
    print("\n=== Preferences – optional ===")
    make_prefs = input("Add any preferences now? [y/n]: ").strip().lower()
    if make_prefs == "y":
        while True:
            raw = input("  Enter two player numbers (e.g., '3 7'), or blank to stop: ").strip()
            if raw == "":
                break
            parts = raw.split()
            if len(parts) != 2 or not all(p.isdigit() for p in parts):
                print("  Please enter exactly two integers like '3 7'.")
                continue
            a, b = int(parts[0]), int(parts[1])
            if not (1 <= a <= player_amount and 1 <= b <= player_amount) or a == b:
                print("  Invalid player numbers.")
                continue
            kind = prompt_str("  Preference ['preferred' = same court, 'avoided' = keep apart]",
                              choices=[PREFERRED, AVOIDED]).lower()
            if not add_preference(players[a - 1], players[b - 1], kind):
                print("  These two already have a preference. Edit players.json to change it.")
                continue
            print(f"  Players {a} and {b}: '{kind}'.")
    return players

# ---------------------- Reset helpers ----------------------

def delete_old_player_artifacts(root: Optional[Path] = None) -> List[str]:
    """Remove any players*.json and players*.md in the repo root."""
    root = root or Path('.')
    patterns = ("players*.json", "players*.md")
    removed: list[str] = []
    for pat in patterns:
        for path in root.glob(pat):
            if path.is_dir():
                continue
            try:
                path.unlink()
                removed.append(str(path))
            except OSError as e:
                print(f"  Warning: could not delete {path}: {e}")
    if removed:
        print("Reset: removed old player files -> " + ", ".join(sorted(removed)))
    else:
        print("Reset: no old player files to remove.")
    return removed

# ---------------------- CLI ----------------------

def main():
    ap = argparse.ArgumentParser(description="Court rotation – roster builder (auto-reset each run)")
    ap.add_argument("--interactive", action="store_true", help="Run interactive setup in terminal")
    args = ap.parse_args()

    # Always reset old player artifacts in repo root at the start of every run
    delete_old_player_artifacts()

    if not args.interactive:
        print("Tip: run with '--interactive' for guided input.\nProceeding interactively now...")
    court_no = prompt_int("Number of courts", 1, 50)
    player_amount = prompt_int("Number of players", 4, 200)
    max_side_diff = prompt_int("Max skill difference between the two sides", 0, 20, default=3)

    players = collect_players(player_amount)

    cfg = SessionConfig(
        courts=[Court(id=str(i), name=f"Court {i}") for i in range(1, court_no + 1)],
        players=players,
        constraints=AllocationConstraints(max_skill_level_difference=max_side_diff),
    )

    # Always write to players.md / players.json at repo root (overwrite)
    md_path = Path("players.md")
    json_path = Path("players.json")

    with md_path.open("w", encoding="utf-8") as f:
        f.write(to_markdown(cfg))
    print(f"Saved: {md_path.resolve()}")

    with json_path.open("w", encoding="utf-8") as f:
        json.dump(to_json_dict(cfg), f, indent=2)
    print(f"Also wrote JSON to: {json_path.resolve()}")

    print("\nNext step: run 'python session_ui.py' to start allocating games.\n")


if __name__ == "__main__":
    main()
