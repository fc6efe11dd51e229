"""Tests for the command line entry point."""

import json
from unittest.mock import MagicMock, patch

import pytest

import taste_discovery.__main__ as cli
from taste_discovery.config import Settings
from taste_discovery.ranking import build_stats, placeholder_recommendations
from taste_discovery.models.profile import TasteProfile
from taste_discovery.models.recommendation import RecommendationResponse


def test_missing_token_exits_with_error(tmp_path) -> None:
    with patch.object(cli, "settings", Settings(SPOTIFY_TOKEN=None, OUTPUT_DIR=str(tmp_path))):
        with pytest.raises(SystemExit) as excinfo:
            cli.run()
    assert excinfo.value.code == 1


def test_writes_recommendations_file(tmp_path) -> None:
    recommendations = placeholder_recommendations()
    response = RecommendationResponse(
        recommendations=recommendations,
        taste_profile=TasteProfile.default(),
        stats=build_stats(recommendations),
    )
    engine = MagicMock()
    engine.get_recommendations.return_value = response
    settings = Settings(SPOTIFY_TOKEN="token", OUTPUT_DIR=str(tmp_path / "out"))

    with patch.object(cli, "settings", settings), patch.object(cli, "RecommendationEngine", return_value=engine):
        cli.run()

    engine.get_recommendations.assert_called_once_with("token", settings.DEFAULT_LIMIT)
    written = json.loads((tmp_path / "out" / "recommendations.json").read_text())
    assert written["stats"]["total_recommendations"] == 3
    assert written["stats"]["placeholder"] is True
