"""Unit tests for the JSON pick-list and probability loaders."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from playoff_pool.registry import (
    RegistryValidationError,
    load_probabilities,
    load_team_records,
    parse_power_index,
)

WriteJson = Callable[[str, Any], Path]


def _power_index_entry(name: str, division_pct: float, playoff_pct: float) -> dict[str, Any]:
    return {
        "team": {"displayName": name},
        "categories": [
            {"values": [1, 2, 3]},
            {"values": [10.0, 5.0, 0.5, 12.0, division_pct, playoff_pct]},
        ],
    }


class TestLoadTeamRecords:
    @pytest.mark.smoke
    def test_loads_array_of_teams(self, write_json: WriteJson) -> None:
        path = write_json(
            "picks.json",
            [
                {
                    "Team": "Bills",
                    "division": "AFC East",
                    "points_playoffs": 1,
                    "points_no_playoffs": 3,
                    "players_list_make_playoffs": ["alice"],
                    "players_list_miss_playoffs": [],
                },
                {"Team": "Jets", "division": "AFC East", "points_playoffs": 2, "points_no_playoffs": 1},
            ],
        )
        records = load_team_records(path)
        assert [r.team_id for r in records] == ["Bills", "Jets"]
        assert records[0].bettors_if_qualify == ("alice",)
        assert not records[1].has_probabilities

    def test_accepts_object_with_teams_key(self, write_json: WriteJson) -> None:
        path = write_json(
            "picks.json",
            {"teams": [{"Team": "Bills", "division": "AFC East", "points_playoffs": 1, "points_no_playoffs": 1}]},
        )
        assert len(load_team_records(path)) == 1

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("[{", encoding="utf-8")
        with pytest.raises(RegistryValidationError, match="invalid JSON"):
            load_team_records(path)

    def test_non_list_payload(self, write_json: WriteJson) -> None:
        with pytest.raises(RegistryValidationError, match="expected a JSON array"):
            load_team_records(write_json("picks.json", {"Team": "Bills"}))

    def test_invalid_team_reports_position(self, write_json: WriteJson) -> None:
        path = write_json("picks.json", [{"Team": "Bills", "division": "AFC East"}])
        with pytest.raises(RegistryValidationError, match="team #0 is invalid"):
            load_team_records(path)


class TestLoadProbabilities:
    def test_plain_mapping(self, write_json: WriteJson) -> None:
        path = write_json(
            "odds.json",
            {"Bills": {"probability_playoffs": 0.9, "probability_division_win": 0.6}},
        )
        table = load_probabilities(path)
        assert table["Bills"].probability_qualify == pytest.approx(0.9)
        assert table["Bills"].probability_division_win == pytest.approx(0.6)

    def test_power_index_payload_divides_percentages(self, write_json: WriteJson) -> None:
        path = write_json(
            "fpi.json",
            {"teams": [_power_index_entry("Bills", 61.5, 88.0), _power_index_entry("Jets", 3.0, 12.5)]},
        )
        table = load_probabilities(path)
        assert table["Bills"].probability_qualify == pytest.approx(0.88)
        assert table["Bills"].probability_division_win == pytest.approx(0.615)
        assert table["Jets"].probability_qualify == pytest.approx(0.125)

    def test_invalid_entry_in_mapping(self, write_json: WriteJson) -> None:
        path = write_json("odds.json", {"Bills": {"probability_playoffs": 2.0, "probability_division_win": 0.1}})
        with pytest.raises(RegistryValidationError, match="'Bills'"):
            load_probabilities(path)

    def test_non_object_payload(self, write_json: WriteJson) -> None:
        with pytest.raises(RegistryValidationError, match="expected a JSON object"):
            load_probabilities(write_json("odds.json", [1, 2]))


class TestParsePowerIndex:
    def test_malformed_entry(self) -> None:
        with pytest.raises(RegistryValidationError, match="entry #0 is malformed"):
            parse_power_index({"teams": [{"team": {"displayName": "Bills"}, "categories": []}]})

    def test_inconsistent_percentages(self) -> None:
        with pytest.raises(RegistryValidationError, match="invalid probabilities"):
            parse_power_index({"teams": [_power_index_entry("Bills", 80.0, 40.0)]})

    def test_empty_payload(self) -> None:
        assert parse_power_index({}) == {}
