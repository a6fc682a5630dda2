"""Shared pytest fixtures for the playoff_pool test suite.

Fixtures defined here are available to all tests without explicit imports.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path
from typing import Any

import pytest

from playoff_pool.registry import TeamRecord, TeamRegistry, build_registry

TeamFactory = Callable[..., TeamRecord]

#: Division-win and qualification probabilities for the four teams of every
#: division in the league fixture (favourite first).
_DIVISION_P_WIN: tuple[float, ...] = (0.4, 0.3, 0.2, 0.1)
_DIVISION_P_QUALIFY: tuple[float, ...] = (0.8, 0.6, 0.4, 0.2)
_REGIONS: tuple[str, ...] = ("East", "North", "South", "West")


def make_team(  # noqa: PLR0913
    team_id: str,
    division: str,
    p_division: float | None,
    p_qualify: float | None,
    *,
    make: Sequence[str] = (),
    miss: Sequence[str] = (),
    points_make: float = 1.0,
    points_miss: float = 1.0,
) -> TeamRecord:
    """Build a :class:`TeamRecord` by field name."""
    return TeamRecord(
        team_id=team_id,
        division=division,
        probability_division_win=p_division,
        probability_qualify=p_qualify,
        points_if_qualify=points_make,
        points_if_not_qualify=points_miss,
        bettors_if_qualify=tuple(make),
        bettors_if_not_qualify=tuple(miss),
    )


@pytest.fixture(autouse=True)
def _restore_package_logger() -> Iterator[None]:
    """Undo any ``configure_logging`` call so caplog sees propagated records."""
    yield
    root = logging.getLogger("playoff_pool")
    root.handlers.clear()
    root.setLevel(logging.NOTSET)
    root.propagate = True


@pytest.fixture
def team_factory() -> TeamFactory:
    """Return the :func:`make_team` helper."""
    return make_team


@pytest.fixture
def league_records() -> list[TeamRecord]:
    """Return a 32-team league: 2 conferences × 4 divisions × 4 teams.

    ``alice`` backs every division favourite to qualify (1 point each),
    ``bob`` backs every last-placed team to miss (1 point each) and
    ``carol`` backs every second team to qualify for 2 points.
    """
    records: list[TeamRecord] = []
    for conference in ("AFC", "NFC"):
        for region in _REGIONS:
            division = f"{conference} {region}"
            for rank, (p_win, p_qualify) in enumerate(zip(_DIVISION_P_WIN, _DIVISION_P_QUALIFY, strict=True)):
                make: tuple[str, ...] = ()
                miss: tuple[str, ...] = ()
                points_make = 1.0
                if rank == 0:
                    make = ("alice",)
                elif rank == 1:
                    make = ("carol",)
                    points_make = 2.0
                elif rank == 3:
                    miss = ("bob",)
                records.append(
                    make_team(
                        f"{division} {rank + 1}",
                        division,
                        p_win,
                        p_qualify,
                        make=make,
                        miss=miss,
                        points_make=points_make,
                    )
                )
    return records


@pytest.fixture
def league_registry(league_records: list[TeamRecord]) -> TeamRegistry:
    """Return the registry built from :func:`league_records`."""
    return build_registry(league_records)


@pytest.fixture
def guaranteed_registry() -> TeamRegistry:
    """Return two single-favourite divisions whose winners are certain.

    ``AFC East`` is always won by ``A1`` and ``NFC East`` by ``N1``; the
    other team in each division never qualifies.  ``alice`` backs both
    winners (3 points each), ``bob`` backs ``A1`` only (1 point).
    """
    return build_registry(
        [
            make_team("A1", "AFC East", 1.0, 1.0, make=("alice", "bob"), points_make=3.0),
            make_team("A2", "AFC East", 0.0, 0.0),
            make_team("N1", "NFC East", 1.0, 1.0, make=("alice",), points_make=3.0),
            make_team("N2", "NFC East", 0.0, 0.0),
        ]
    )


@pytest.fixture
def write_json(tmp_path: Path) -> Callable[[str, Any], Path]:
    """Return a helper that writes *payload* as JSON under ``tmp_path``."""

    def _write(name: str, payload: Any) -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    return _write
