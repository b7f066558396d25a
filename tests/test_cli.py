"""
Tests for the cityharvest CLI helpers.
"""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from cityharvest import config as config_module
from cityharvest.__main__ import build_parser, load_tiles, main, resolve_log_level
from cityharvest.harvester.types import AreaTile


class TestLoadTiles:
    def test_object_entries(self, tmp_path):
        path = tmp_path / "tiles.json"
        path.write_text(json.dumps([{"latitude": 44.43, "longitude": 26.1}]))

        assert load_tiles(path) == [AreaTile(44.43, 26.1)]

    def test_pair_entries(self, tmp_path):
        path = tmp_path / "tiles.json"
        path.write_text(json.dumps([[44.43, 26.1], ["44.45", "26.12"]]))

        assert load_tiles(path) == [AreaTile(44.43, 26.1), AreaTile(44.45, 26.12)]

    def test_empty_file(self, tmp_path):
        path = tmp_path / "tiles.json"
        path.write_text("[]")

        assert load_tiles(path) == []


class TestParser:
    def test_locations_command(self):
        args = build_parser().parse_args(["locations", "--city-id", "7", "--tiles", "t.json"])

        assert args.command == "locations"
        assert args.city_id == 7
        assert args.tiles == Path("t.json")

    def test_photos_command(self):
        args = build_parser().parse_args(["-v", "photos", "--city-id", "3"])

        assert args.command == "photos"
        assert args.verbose is True

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestResolveLogLevel:
    def test_verbose_wins(self):
        assert resolve_log_level(True, "ERROR", "INFO") == "DEBUG"

    def test_flag_over_env(self):
        assert resolve_log_level(False, "WARNING", "INFO") == "WARNING"

    def test_env_level_is_case_insensitive(self):
        assert resolve_log_level(False, None, "debug") == "DEBUG"

    def test_invalid_env_level(self):
        with pytest.raises(ValueError, match="VERBOSE"):
            resolve_log_level(False, None, "verbose")


class TestMain:
    @pytest.fixture(autouse=True)
    def fresh_config(self, monkeypatch):
        monkeypatch.setattr(config_module, "_config", None)

    def test_invalid_log_level_is_a_usage_error(self, monkeypatch, capsys):
        monkeypatch.setenv("LOG_LEVEL", "verbose")
        monkeypatch.setattr("sys.argv", ["cityharvest", "photos", "--city-id", "7"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 2
        assert "Invalid log level" in capsys.readouterr().err

    def test_interrupted_schedule_exits_cleanly(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "INFO")
        monkeypatch.setattr("sys.argv", ["cityharvest", "schedule", "--city-id", "7"])

        with patch("cityharvest.__main__._run_scheduler", MagicMock()), patch(
            "cityharvest.__main__.asyncio.run", side_effect=KeyboardInterrupt
        ):
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 0

    def test_failed_harvest_exits_with_error(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "INFO")
        monkeypatch.setattr("sys.argv", ["cityharvest", "photos", "--city-id", "7"])

        with patch("cityharvest.harvester.run_photo_harvest", MagicMock()), patch(
            "cityharvest.__main__.asyncio.run", side_effect=RuntimeError("db down")
        ):
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 1
