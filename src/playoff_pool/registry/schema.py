"""Pydantic v2 schema models for pool input records.

Defines :class:`TeamRecord` (one team, its qualification probabilities and
the bets riding on it) and :class:`TeamProbabilities` (a probability-only
record used when picks and probabilities come from separate sources).  Field
aliases follow the pick-list JSON layout (``Team``, ``probability_playoffs``,
``players_list_make_playoffs``, ...) so raw files validate directly.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

#: Slack allowed when comparing the two probabilities of a team.
_PROBABILITY_TOLERANCE: float = 1e-9


class Conference(str, enum.Enum):
    """The two conferences of the league; each fills its own wildcard slots."""

    A = "AFC"
    B = "NFC"

    @classmethod
    def _missing_(cls, value: object) -> Conference | None:
        if not isinstance(value, str):
            return None
        key = value.strip().upper()
        for member in cls:
            if key in (member.name, member.value):
                return member
        return None


def conference_from_division(division: str) -> Conference:
    """Derive the conference from a division name's leading token.

    Args:
        division: Division name such as ``"AFC East"``.

    Returns:
        The matching :class:`Conference`.

    Raises:
        ValueError: If the leading token names no conference.
    """
    tokens = division.split()
    if tokens:
        try:
            return Conference(tokens[0])
        except ValueError:
            pass
    msg = f"Cannot derive a conference from division {division!r}; pass 'conference' explicitly"
    raise ValueError(msg)


def _check_probability_order(p_division: float | None, p_qualify: float | None) -> None:
    if p_division is None or p_qualify is None:
        return
    if p_qualify + _PROBABILITY_TOLERANCE < p_division:
        msg = f"probability_qualify ({p_qualify}) must be >= probability_division_win ({p_division})"
        raise ValueError(msg)


def _unique_in_order(names: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for name in names:
        seen.setdefault(name, None)
    return tuple(seen)


class TeamProbabilities(BaseModel):
    """Qualification probabilities for one team."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    probability_qualify: float = Field(..., ge=0.0, le=1.0, alias="probability_playoffs")
    probability_division_win: float = Field(..., ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_order(self) -> TeamProbabilities:
        _check_probability_order(self.probability_division_win, self.probability_qualify)
        return self


class TeamRecord(BaseModel):
    """A team, its qualification probabilities and the bets placed on it.

    Probabilities are optional at this layer: a pick list may be loaded
    before its probability source is merged in (see
    :func:`playoff_pool.registry.team_registry.merge_probabilities`).  The
    registry constructor rejects records whose probabilities are still
    missing.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    team_id: str = Field(..., min_length=1, alias="Team")
    division: str = Field(..., min_length=1)
    conference: Conference
    probability_division_win: float | None = Field(default=None, ge=0.0, le=1.0)
    probability_qualify: float | None = Field(default=None, ge=0.0, le=1.0, alias="probability_playoffs")
    points_if_qualify: float = Field(..., alias="points_playoffs")
    points_if_not_qualify: float = Field(..., alias="points_no_playoffs")
    bettors_if_qualify: tuple[str, ...] = Field(default=(), alias="players_list_make_playoffs")
    bettors_if_not_qualify: tuple[str, ...] = Field(default=(), alias="players_list_miss_playoffs")

    @model_validator(mode="before")
    @classmethod
    def _derive_conference(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("conference") is None:
            division = data.get("division")
            if isinstance(division, str):
                data = {**data, "conference": conference_from_division(division)}
        return data

    @field_validator("bettors_if_qualify", "bettors_if_not_qualify", mode="before")
    @classmethod
    def _normalise_bettors(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            msg = "bettor lists must be sequences of participant names, not a single string"
            raise ValueError(msg)
        return _unique_in_order(value)

    @model_validator(mode="after")
    def _check_order(self) -> TeamRecord:
        _check_probability_order(self.probability_division_win, self.probability_qualify)
        return self

    @property
    def has_probabilities(self) -> bool:
        """Return ``True`` when both probability fields are present."""
        return self.probability_division_win is not None and self.probability_qualify is not None

    @property
    def participants(self) -> tuple[str, ...]:
        """Return every participant betting on this team, first-seen order."""
        return _unique_in_order((*self.bettors_if_qualify, *self.bettors_if_not_qualify))

    def with_probabilities(self, probabilities: TeamProbabilities) -> TeamRecord:
        """Return a copy of this record carrying *probabilities*."""
        return self.model_copy(
            update={
                "probability_division_win": probabilities.probability_division_win,
                "probability_qualify": probabilities.probability_qualify,
            }
        )
