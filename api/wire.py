"""
Translates prediction-server JSON into the typed records in models.dto.

The server speaks snake_case with ISO-8601 dates. A few fields do not map
one-to-one onto attribute names and need explicit overrides:

  Game.date          <- "scheduled_date" (older builds send "date")
  Player.photo_url   <- "photo_url", "photo_u_r_l" or "photoURL"
  Article.team_abbreviations <- list, stored as tuple

Every function raises KeyError / TypeError / ValueError on a payload of the
wrong shape; PredictorApiClient turns those into ApiError(DECODE).
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any

from models.dto import (
    Article,
    CurrentWeek,
    ErrorPayload,
    Game,
    GameOdds,
    GamePrediction,
    Player,
    PlayerStats,
    Prediction,
    PredictionResult,
    Team,
    TeamDetail,
    TeamRecord,
    TeamRoster,
    VegasOdds,
)

# Tag attached to predictions produced by the hosted model
PRODUCTION_MODEL_VERSION = "Production API v1.0"

_GAME_DATE_KEYS = ("scheduled_date", "scheduledDate", "date")
_PHOTO_URL_KEYS = ("photo_url", "photo_u_r_l", "photoURL")


def _first(raw: dict[str, Any], keys: tuple[str, ...], default: Any = None) -> Any:
    for key in keys:
        if key in raw:
            return raw[key]
    return default


def _require_dict(raw: Any, what: str) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise TypeError(f"expected object for {what}, got {type(raw).__name__}")
    return raw


def _require_list(raw: Any, what: str) -> list[Any]:
    if not isinstance(raw, list):
        raise TypeError(f"expected array for {what}, got {type(raw).__name__}")
    return raw


def _opt_int(value: Any) -> int | None:
    return None if value is None else int(value)


def _opt_float(value: Any) -> float | None:
    return None if value is None else float(value)


def _opt_str(value: Any) -> str | None:
    return None if value is None else str(value)


def parse_datetime(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp. Naive values are treated as UTC."""
    if not isinstance(value, str):
        raise TypeError(f"expected ISO-8601 string, got {type(value).__name__}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _opt_datetime(value: Any) -> datetime | None:
    return None if value is None else parse_datetime(value)


# ---------------------------------------------------------------------------
# Teams & games
# ---------------------------------------------------------------------------

def team_from_json(raw: Any) -> Team:
    raw = _require_dict(raw, "team")
    return Team(
        name=str(raw["name"]),
        abbreviation=str(raw["abbreviation"]),
        conference=str(raw["conference"]),
        division=str(raw["division"]),
    )


def record_from_json(raw: Any) -> TeamRecord:
    raw = _require_dict(raw, "record")
    return TeamRecord(
        wins=_opt_int(raw.get("wins")),
        losses=_opt_int(raw.get("losses")),
        ties=_opt_int(raw.get("ties")),
        win_percentage=_opt_float(raw.get("win_percentage")),
    )


def game_from_json(raw: Any) -> Game:
    raw = _require_dict(raw, "game")
    # /upcoming may wrap each game together with its prediction and odds
    if "game" in raw and isinstance(raw["game"], dict):
        raw = raw["game"]
    date_value = _first(raw, _GAME_DATE_KEYS)
    if date_value is None:
        raise KeyError("scheduled_date")
    return Game(
        id=str(raw["id"]),
        home_team=team_from_json(raw["home_team"]),
        away_team=team_from_json(raw["away_team"]),
        date=parse_datetime(date_value),
        week=_opt_int(raw.get("week")),
        season=_opt_int(raw.get("season")),
        home_score=_opt_int(raw.get("home_score")),
        away_score=_opt_int(raw.get("away_score")),
        status=_opt_str(raw.get("status")),
        quarter=_opt_int(raw.get("quarter")),
        time_remaining=_opt_str(raw.get("time_remaining")),
        possession=_opt_str(raw.get("possession")),
    )


def team_detail_from_json(raw: Any) -> TeamDetail:
    raw = _require_dict(raw, "team detail")
    record = raw.get("record")
    next_game = raw.get("next_game")
    return TeamDetail(
        name=str(raw["name"]),
        abbreviation=str(raw["abbreviation"]),
        conference=str(raw["conference"]),
        division=str(raw["division"]),
        record=record_from_json(record) if record is not None else None,
        next_game=game_from_json(next_game) if next_game is not None else None,
    )


def odds_from_json(raw: Any) -> GameOdds:
    raw = _require_dict(raw, "odds")
    return GameOdds(
        home_team_odds=_opt_float(raw.get("home_team_odds")),
        away_team_odds=_opt_float(raw.get("away_team_odds")),
        spread=_opt_float(raw.get("spread")),
        over_under=_opt_float(raw.get("over_under")),
        last_updated=_opt_datetime(raw.get("last_updated")),
    )


def game_prediction_from_json(raw: Any) -> GamePrediction:
    raw = _require_dict(raw, "game prediction")
    prediction = raw.get("prediction")
    odds = raw.get("odds")
    return GamePrediction(
        game=game_from_json(raw["game"] if "game" in raw else raw),
        prediction=prediction_result_from_json(prediction) if prediction is not None else None,
        odds=odds_from_json(odds) if odds is not None else None,
    )


def current_week_from_json(raw: Any) -> CurrentWeek:
    raw = _require_dict(raw, "current week")
    return CurrentWeek(
        week=int(raw["week"]),
        season=int(raw["season"]),
        games=tuple(game_prediction_from_json(g) for g in _require_list(raw.get("games", []), "games")),
        last_updated=_opt_datetime(raw.get("last_updated")),
    )


# ---------------------------------------------------------------------------
# Predictions
# ---------------------------------------------------------------------------

def _checked_confidence(value: Any) -> float:
    confidence = float(value)
    if not 0.0 <= confidence <= 1.0:
        raise ValueError(f"confidence {confidence} outside [0, 1]")
    return confidence


def prediction_result_from_json(raw: Any) -> PredictionResult:
    raw = _require_dict(raw, "prediction result")
    return PredictionResult(
        predicted_winner=str(raw["predicted_winner"]),
        confidence=_checked_confidence(raw["confidence"]),
        reasoning=_opt_str(raw.get("reasoning")),
        model_version=_opt_str(raw.get("model_version")),
    )


def vegas_odds_from_json(raw: Any) -> VegasOdds:
    raw = _require_dict(raw, "vegas odds")
    return VegasOdds(
        bookmaker=str(raw.get("bookmaker", "")),
        home_moneyline=_opt_int(raw.get("home_moneyline")),
        away_moneyline=_opt_int(raw.get("away_moneyline")),
        spread=_opt_float(raw.get("spread")),
        total=_opt_float(raw.get("total")),
        home_implied_probability=_opt_float(raw.get("home_implied_probability")),
        away_implied_probability=_opt_float(raw.get("away_implied_probability")),
    )


def prediction_from_json(raw: Any) -> Prediction:
    raw = _require_dict(raw, "prediction")
    vegas = raw.get("vegas_odds")
    return Prediction(
        game_id=str(raw["game_id"]),
        home_team=team_from_json(raw["home_team"]),
        away_team=team_from_json(raw["away_team"]),
        scheduled_date=parse_datetime(raw["scheduled_date"]),
        location=str(raw.get("location", "")),
        week=int(raw["week"]),
        season=int(raw["season"]),
        home_win_probability=float(raw["home_win_probability"]),
        away_win_probability=float(raw["away_win_probability"]),
        confidence=_checked_confidence(raw["confidence"]),
        reasoning=str(raw.get("reasoning", "")),
        predicted_home_score=_opt_int(raw.get("predicted_home_score")),
        predicted_away_score=_opt_int(raw.get("predicted_away_score")),
        vegas_odds=vegas_odds_from_json(vegas) if vegas is not None else None,
    )


def to_prediction_result(prediction: Prediction, home: str, away: str) -> PredictionResult:
    """Collapse the server's full prediction into what the screens display."""
    winner = home if prediction.home_win_probability > prediction.away_win_probability else away
    return PredictionResult(
        predicted_winner=winner,
        confidence=prediction.confidence,
        reasoning=prediction.reasoning,
        model_version=PRODUCTION_MODEL_VERSION,
    )


# ---------------------------------------------------------------------------
# Rosters & news
# ---------------------------------------------------------------------------

def player_stats_from_json(raw: Any) -> PlayerStats:
    raw = _require_dict(raw, "player stats")
    return PlayerStats(
        passing_yards=_opt_int(raw.get("passing_yards")),
        passing_touchdowns=_opt_int(raw.get("passing_touchdowns")),
        passing_interceptions=_opt_int(raw.get("passing_interceptions")),
        passing_completions=_opt_int(raw.get("passing_completions")),
        passing_attempts=_opt_int(raw.get("passing_attempts")),
        rushing_yards=_opt_int(raw.get("rushing_yards")),
        rushing_touchdowns=_opt_int(raw.get("rushing_touchdowns")),
        rushing_attempts=_opt_int(raw.get("rushing_attempts")),
        receiving_yards=_opt_int(raw.get("receiving_yards")),
        receiving_touchdowns=_opt_int(raw.get("receiving_touchdowns")),
        receptions=_opt_int(raw.get("receptions")),
        targets=_opt_int(raw.get("targets")),
        tackles=_opt_int(raw.get("tackles")),
        sacks=_opt_float(raw.get("sacks")),
        interceptions=_opt_int(raw.get("interceptions")),
    )


def player_from_json(raw: Any) -> Player:
    raw = _require_dict(raw, "player")
    stats = raw.get("stats")
    return Player(
        id=str(raw["id"]),
        name=str(raw["name"]),
        position=str(raw["position"]),
        jersey_number=_opt_str(raw.get("jersey_number")),
        photo_url=_opt_str(_first(raw, _PHOTO_URL_KEYS)),
        stats=player_stats_from_json(stats) if stats is not None else None,
    )


def roster_from_json(raw: Any) -> TeamRoster:
    raw = _require_dict(raw, "roster")
    return TeamRoster(
        team=team_from_json(raw["team"]),
        players=tuple(player_from_json(p) for p in _require_list(raw["players"], "players")),
        season=int(raw["season"]),
    )


def article_from_json(raw: Any) -> Article:
    raw = _require_dict(raw, "article")
    return Article(
        title=str(raw["title"]),
        content=str(raw.get("content", "")),
        source=str(raw.get("source", "")),
        published_date=parse_datetime(raw["published_date"]),
        team_abbreviations=tuple(str(t) for t in raw.get("team_abbreviations", [])),
        url=_opt_str(raw.get("url")),
    )


def list_from_json(raw: Any, item_parser, what: str) -> list:
    return [item_parser(item) for item in _require_list(raw, what)]


# ---------------------------------------------------------------------------
# Error payloads
# ---------------------------------------------------------------------------

def error_payload_from_json(raw: Any) -> ErrorPayload | None:
    """
    Return an ErrorPayload if raw looks like {"error": ..., "message"|"reason": ...}.
    Returns None for anything else (including bare {"error": true} flags).
    """
    if not isinstance(raw, dict) or "error" not in raw:
        return None
    message = raw.get("message")
    reason = raw.get("reason")
    if message is None and reason is None:
        return None
    return ErrorPayload(
        error=str(raw["error"]),
        message=str(message) if message is not None else "",
        reason=str(reason) if reason is not None else None,
    )
