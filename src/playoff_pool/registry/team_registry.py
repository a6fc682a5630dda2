"""Immutable team registry consumed by the simulation engine.

:func:`build_registry` validates a collection of :class:`TeamRecord` objects
and freezes them into a :class:`TeamRegistry`: team and participant index
maps, division and conference groupings, and read-only probability vectors.
Every later stage (sampler, scoring, standings) works on registry indices.

:func:`merge_probabilities` joins a pick list with a separately sourced
probability table.  Identifiers that do not match exactly are a validation
error; the message names the closest known spelling so the data can be
fixed at the source.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
from rapidfuzz import fuzz

from playoff_pool.registry.schema import Conference, TeamProbabilities, TeamRecord

logger = logging.getLogger(__name__)

#: Wildcard qualifiers drawn per conference after the division winners.
WILDCARDS_PER_CONFERENCE: int = 3


class RegistryValidationError(ValueError):
    """Raised when pool input cannot form a consistent team registry."""


@dataclass(frozen=True)
class Division:
    """A division and the registry indices of its teams.

    Attributes:
        name: Division name (e.g. ``"AFC East"``).
        conference: Conference the division belongs to.
        team_indices: Registry indices of member teams, in input order.
    """

    name: str
    conference: Conference
    team_indices: npt.NDArray[np.intp]


@dataclass(frozen=True)
class TeamRegistry:
    """Validated, read-only snapshot of all teams in a pool.

    Attributes:
        teams: Team records in input order.
        team_ids: Team identifiers, aligned with ``teams``.
        team_index_map: Mapping of ``team_id → index``.
        participants: Participant identifiers in first-reference order.
        participant_index_map: Mapping of ``participant → index``.
        divisions: Divisions in first-appearance order.
        conference_indices: Mapping of conference → team indices.
        probability_division_win: Division-win probability per team.
        probability_qualify: Overall qualification probability per team.
    """

    teams: tuple[TeamRecord, ...]
    team_ids: tuple[str, ...]
    team_index_map: dict[str, int]
    participants: tuple[str, ...]
    participant_index_map: dict[str, int]
    divisions: tuple[Division, ...]
    conference_indices: dict[Conference, npt.NDArray[np.intp]]
    probability_division_win: npt.NDArray[np.float64]
    probability_qualify: npt.NDArray[np.float64]

    @property
    def n_teams(self) -> int:
        """Return the number of teams."""
        return len(self.team_ids)

    @property
    def n_participants(self) -> int:
        """Return the number of participants."""
        return len(self.participants)

    @property
    def wildcard_weights(self) -> npt.NDArray[np.float64]:
        """Return the residual (non-division) qualification mass per team."""
        result: npt.NDArray[np.float64] = np.maximum(0.0, self.probability_qualify - self.probability_division_win)
        return result

    @property
    def n_slots(self) -> int:
        """Return the number of qualifiers in a fully-filled outcome.

        One per division plus up to :data:`WILDCARDS_PER_CONFERENCE` per
        conference, capped by the number of non-winning teams available.
        """
        slots = len(self.divisions)
        for conference, indices in self.conference_indices.items():
            n_winners = sum(1 for d in self.divisions if d.conference is conference)
            slots += min(WILDCARDS_PER_CONFERENCE, len(indices) - n_winners)
        return slots

    def team(self, team_id: str) -> TeamRecord:
        """Return the record for *team_id*.

        Raises:
            KeyError: If *team_id* is not registered.
        """
        return self.teams[self.team_index_map[team_id]]


def _frozen(values: Iterable[float] | Iterable[int], dtype: type) -> npt.NDArray[np.generic]:
    arr = np.array(list(values), dtype=dtype)
    arr.setflags(write=False)
    return arr


def _resolve_probabilities(
    records: list[TeamRecord],
    missing_probability_as_zero: bool,
) -> list[TeamRecord]:
    missing = [r.team_id for r in records if not r.has_probabilities]
    if not missing:
        return records
    if not missing_probability_as_zero:
        msg = (
            f"{len(missing)} team(s) have no qualification probabilities: {missing}. "
            "Merge a probability source or set missing_probability_as_zero=True."
        )
        raise RegistryValidationError(msg)

    resolved: list[TeamRecord] = []
    for record in records:
        if record.has_probabilities:
            resolved.append(record)
            continue
        logger.warning("Team %r is missing probabilities; defaulting them to zero", record.team_id)
        p_division = record.probability_division_win or 0.0
        p_qualify = record.probability_qualify if record.probability_qualify is not None else p_division
        resolved.append(
            record.model_copy(update={"probability_division_win": p_division, "probability_qualify": p_qualify})
        )
    return resolved


def build_registry(
    records: Iterable[TeamRecord],
    *,
    missing_probability_as_zero: bool = False,
) -> TeamRegistry:
    """Validate team records and freeze them into a :class:`TeamRegistry`.

    Args:
        records: Team records (input order is preserved and determines the
            order in which divisions are sampled).
        missing_probability_as_zero: Treat absent probability fields as
            ``0.0`` instead of failing.  Changes simulation semantics, so it
            must be requested explicitly.

    Returns:
        The validated registry.

    Raises:
        RegistryValidationError: If there are no teams, identifiers repeat,
            probabilities are missing (and not defaulted), or a division
            spans both conferences.
    """
    record_list = list(records)
    if not record_list:
        msg = "Cannot build a registry from zero teams"
        raise RegistryValidationError(msg)

    seen: set[str] = set()
    duplicates: list[str] = []
    for record in record_list:
        if record.team_id in seen:
            duplicates.append(record.team_id)
        seen.add(record.team_id)
    if duplicates:
        msg = f"Duplicate team identifiers: {sorted(set(duplicates))}"
        raise RegistryValidationError(msg)

    record_list = _resolve_probabilities(record_list, missing_probability_as_zero)

    team_ids = tuple(r.team_id for r in record_list)
    team_index_map = {tid: i for i, tid in enumerate(team_ids)}

    participant_index_map: dict[str, int] = {}
    for record in record_list:
        for participant in record.participants:
            participant_index_map.setdefault(participant, len(participant_index_map))

    division_members: dict[str, list[int]] = {}
    division_conference: dict[str, Conference] = {}
    conference_members: dict[Conference, list[int]] = {}
    for i, record in enumerate(record_list):
        known = division_conference.setdefault(record.division, record.conference)
        if known is not record.conference:
            msg = (
                f"Division {record.division!r} spans both conferences "
                f"({known.value} and {record.conference.value}, at team {record.team_id!r})"
            )
            raise RegistryValidationError(msg)
        division_members.setdefault(record.division, []).append(i)
        conference_members.setdefault(record.conference, []).append(i)

    p_division = np.array([r.probability_division_win for r in record_list], dtype=np.float64)
    p_qualify = np.array([r.probability_qualify for r in record_list], dtype=np.float64)

    divisions = tuple(
        Division(
            name=name,
            conference=division_conference[name],
            team_indices=_frozen(members, np.intp),
        )
        for name, members in division_members.items()
    )

    for division in divisions:
        total = float(p_division[division.team_indices].sum())
        if total <= 0.0:
            logger.warning("Division %r has zero total division-win probability", division.name)
        elif abs(total - 1.0) > 1e-6:
            logger.debug("Division %r win probabilities sum to %.4f; normalising", division.name, total)

    p_division.setflags(write=False)
    p_qualify.setflags(write=False)

    registry = TeamRegistry(
        teams=tuple(record_list),
        team_ids=team_ids,
        team_index_map=team_index_map,
        participants=tuple(participant_index_map),
        participant_index_map=participant_index_map,
        divisions=divisions,
        conference_indices={
            conference: _frozen(members, np.intp)
            for conference, members in sorted(conference_members.items(), key=lambda kv: kv[0].name)
        },
        probability_division_win=p_division,
        probability_qualify=p_qualify,
    )
    logger.debug(
        "Built registry: %d teams, %d divisions, %d participants",
        registry.n_teams,
        len(registry.divisions),
        registry.n_participants,
    )
    return registry


def _closest_name(name: str, known: Iterable[str]) -> tuple[str | None, float]:
    best_score = 0.0
    best_name: str | None = None
    for candidate in known:
        score = fuzz.ratio(name.lower(), candidate.lower())
        if score > best_score:
            best_score = score
            best_name = candidate
    return best_name, best_score


def merge_probabilities(
    records: Iterable[TeamRecord],
    probabilities: Mapping[str, TeamProbabilities],
    *,
    missing_probability_as_zero: bool = False,
) -> list[TeamRecord]:
    """Attach probabilities from a separate source onto pick-list records.

    Matching is by exact team identifier.  A team absent from
    *probabilities* is an error unless *missing_probability_as_zero* is set,
    in which case it keeps no probabilities and :func:`build_registry`
    defaults them to zero.

    Args:
        records: Pick-list team records.
        probabilities: Mapping of ``team_id → TeamProbabilities``.
        missing_probability_as_zero: Tolerate unmatched teams.

    Returns:
        New records carrying the merged probabilities.

    Raises:
        RegistryValidationError: If any team is unmatched and
            *missing_probability_as_zero* is ``False``.
    """
    merged: list[TeamRecord] = []
    unmatched: list[str] = []
    for record in records:
        found = probabilities.get(record.team_id)
        if found is None:
            best, score = _closest_name(record.team_id, probabilities)
            hint = f"{record.team_id!r} (closest: {best!r}, score {score:.0f})" if best else repr(record.team_id)
            unmatched.append(hint)
            merged.append(record)
            continue
        merged.append(record.with_probabilities(found))

    if unmatched:
        if not missing_probability_as_zero:
            msg = f"No probabilities found for team(s): {', '.join(unmatched)}"
            raise RegistryValidationError(msg)
        logger.warning("No probabilities found for team(s): %s", ", ".join(unmatched))

    unused = set(probabilities) - {r.team_id for r in merged}
    if unused:
        logger.debug("Probability entries with no matching team: %s", sorted(unused))
    return merged
