#!/usr/bin/env python3
"""Apply a TOML file of workouts to a save slot and print what changed.

The workouts file holds ``[[workouts]]`` tables with ``id``, ``type``,
``calories``, ``distance_miles``, ``duration_minutes``, ``completed_at``
(epoch seconds or a TOML datetime) and an optional ``avg_heart_rate``.
Records are applied oldest first; ids already on the save are skipped.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys
import time
from typing import Any, List, Mapping

import tomllib

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stridequest.catalog import load_catalog
from stridequest.config import EngineConfig
from stridequest.constants import DEFAULT_SAVE_KEY
from stridequest.game import ApplyAllSummary, GameState
from stridequest.models.workout import WorkoutRecord, chronological
from stridequest.storage import DataStore

log = logging.getLogger("stridequest.replay")


def read_workouts(path: Path) -> List[WorkoutRecord]:
    with path.open("rb") as handle:
        payload = tomllib.load(handle)
    entries = payload.get("workouts", [])
    if not isinstance(entries, list):
        raise ValueError(f"{path}: 'workouts' must be an array of tables")
    records: List[WorkoutRecord] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, Mapping) or not ("id" in entry or "key" in entry):
            log.warning("Skipping workout #%d in %s: missing id", index, path)
            continue
        records.append(WorkoutRecord.from_dict(entry))
    return chronological(records)


def format_summary(summary: ApplyAllSummary, state: GameState) -> str:
    current, cap = state.mana_status()
    lines = [
        f"Workouts applied: {summary.workout_count}",
        f"XP gained: {summary.total_xp:.1f}",
        f"Distance credited: {summary.distance_credited:.2f} mi",
    ]
    for line in summary.lines:
        lines.append(
            f"  {line.tier.display_name} {line.workout_type.display_name} x{line.workouts}"
            f" -> {line.efforts} {line.affinity.display_name} effort(s)"
        )
    lines.append(
        f"Mana: {summary.mana_before} -> {summary.mana_after}"
        f" (+{summary.mana_gained_net}), pool {current}/{cap}"
    )
    lines.append(f"Level {state.player.level} ({state.xp_progress():.0%} to next)")
    if summary.level_ups:
        lines.append(f"Levels gained: {summary.level_ups}")
    return "\n".join(lines)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("workouts", type=Path, help="TOML file with [[workouts]] tables.")
    parser.add_argument(
        "--save",
        default=DEFAULT_SAVE_KEY,
        help="Save slot to update.",
    )
    parser.add_argument(
        "--data-root",
        type=Path,
        default=None,
        help="Storage root (defaults to STRIDEQUEST_DATA_ROOT or the checkout).",
    )
    parser.add_argument(
        "--now",
        type=float,
        default=None,
        help="Epoch seconds used as 'now' for the weekly effort window.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the summary without writing the save.",
    )

    args = parser.parse_args()
    config = EngineConfig.from_env()
    logging.basicConfig(level=config.log_level)

    store = DataStore(root=args.data_root or config.data_root)
    state = GameState(
        load_catalog(config.catalog_path),
        None if args.dry_run else store,
        config=config,
        save_key=args.save,
        player=store.load(args.save),
    )
    records = read_workouts(args.workouts)
    now = args.now if args.now is not None else time.time()
    summary = state.apply_all(records, now=now)
    print(format_summary(summary, state))
    for event in state.events.drain():
        log.info("Event %s: %s", event.kind.value, _describe(event.data))


def _describe(data: Mapping[str, Any]) -> str:
    return ", ".join(f"{key}={value}" for key, value in sorted(data.items()))


if __name__ == "__main__":
    main()
