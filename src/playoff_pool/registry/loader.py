"""JSON loaders for pick lists and probability tables.

Two probability layouts are accepted:

* a plain mapping ``{team: {"probability_playoffs": .., "probability_division_win": ..}}``;
* a saved power-index payload, where each entry of ``teams`` carries
  ``team.displayName`` and a ``categories[1].values`` row whose indices 4
  and 5 are the division-win and playoff percentages.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from playoff_pool.registry.schema import TeamProbabilities, TeamRecord
from playoff_pool.registry.team_registry import RegistryValidationError

#: Index of the projection category inside a power-index team entry.
_POWER_INDEX_CATEGORY: int = 1
_POWER_INDEX_DIVISION_COL: int = 4
_POWER_INDEX_PLAYOFF_COL: int = 5


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        msg = f"{path}: invalid JSON ({exc})"
        raise RegistryValidationError(msg) from exc


def load_team_records(path: Path) -> list[TeamRecord]:
    """Load a pick list from a JSON array of team objects.

    A top-level object with a ``teams`` array is accepted as well.

    Raises:
        RegistryValidationError: If the file is not valid JSON, is not a list
            of team objects, or a team fails schema validation.
    """
    payload = _read_json(path)
    if isinstance(payload, dict) and "teams" in payload:
        payload = payload["teams"]
    if not isinstance(payload, list):
        msg = f"{path}: expected a JSON array of teams, got {type(payload).__name__}"
        raise RegistryValidationError(msg)

    records: list[TeamRecord] = []
    for i, item in enumerate(payload):
        try:
            records.append(TeamRecord.model_validate(item))
        except ValidationError as exc:
            msg = f"{path}: team #{i} is invalid: {exc}"
            raise RegistryValidationError(msg) from exc
    return records


def parse_power_index(payload: Mapping[str, Any]) -> dict[str, TeamProbabilities]:
    """Extract probabilities from a power-index payload.

    Percentages in the payload are divided by 100.

    Raises:
        RegistryValidationError: If an entry lacks the expected structure.
    """
    result: dict[str, TeamProbabilities] = {}
    for i, entry in enumerate(payload.get("teams", [])):
        try:
            name = entry["team"]["displayName"]
            values = entry["categories"][_POWER_INDEX_CATEGORY]["values"]
            playoff_pct = float(values[_POWER_INDEX_PLAYOFF_COL])
            division_pct = float(values[_POWER_INDEX_DIVISION_COL])
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            msg = f"power-index entry #{i} is malformed: {exc!r}"
            raise RegistryValidationError(msg) from exc
        try:
            result[name] = TeamProbabilities(
                probability_qualify=playoff_pct / 100.0,
                probability_division_win=division_pct / 100.0,
            )
        except ValidationError as exc:
            msg = f"power-index entry {name!r} has invalid probabilities: {exc}"
            raise RegistryValidationError(msg) from exc
    return result


def load_probabilities(path: Path) -> dict[str, TeamProbabilities]:
    """Load a probability table in either supported layout.

    Raises:
        RegistryValidationError: If the file cannot be parsed.
    """
    payload = _read_json(path)
    if not isinstance(payload, dict):
        msg = f"{path}: expected a JSON object, got {type(payload).__name__}"
        raise RegistryValidationError(msg)
    if isinstance(payload.get("teams"), list):
        return parse_power_index(payload)

    result: dict[str, TeamProbabilities] = {}
    for name, item in payload.items():
        try:
            result[name] = TeamProbabilities.model_validate(item)
        except ValidationError as exc:
            msg = f"{path}: probabilities for {name!r} are invalid: {exc}"
            raise RegistryValidationError(msg) from exc
    return result
