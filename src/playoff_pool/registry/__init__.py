"""Team registry: input schema, validation and loading."""

from __future__ import annotations

from playoff_pool.registry.loader import load_probabilities, load_team_records, parse_power_index
from playoff_pool.registry.schema import Conference, TeamProbabilities, TeamRecord, conference_from_division
from playoff_pool.registry.team_registry import (
    WILDCARDS_PER_CONFERENCE,
    Division,
    RegistryValidationError,
    TeamRegistry,
    build_registry,
    merge_probabilities,
)

__all__ = [
    "WILDCARDS_PER_CONFERENCE",
    "Conference",
    "Division",
    "RegistryValidationError",
    "TeamProbabilities",
    "TeamRecord",
    "TeamRegistry",
    "build_registry",
    "conference_from_division",
    "load_probabilities",
    "load_team_records",
    "merge_probabilities",
    "parse_power_index",
]
