"""League snapshot API response schemas.

Merged chart rows carry NaN for "no data"; JSON has no NaN, so those
values are emitted as null.
"""

import math

from pydantic import BaseModel, ConfigDict

from league_snapshot.services.calculations import LeagueRecord, MergedRow
from league_snapshot.services.records import RecordDefinition
from league_snapshot.services.snapshot import LeagueSnapshot

ENTRY_EVENT_URL = "https://fantasy.premierleague.com/entry/{code}/event/{event}"


def _finite_or_none(value: int | float | None) -> int | float | None:
    if value is None or not math.isfinite(value):
        return None
    return value


def rows_to_json(rows: list[MergedRow]) -> list[dict[str, int | float | None]]:
    """Replace non-finite sentinels with None so rows serialize as JSON."""
    return [{key: _finite_or_none(value) for key, value in row.items()} for row in rows]


class SeriesPointResponse(BaseModel):
    """One gameweek of a participant's raw series."""

    model_config = ConfigDict(from_attributes=True)

    event: int
    points: int | None
    total_points: int | None


class LeagueRecordResponse(BaseModel):
    """A leaderboard entry."""

    model_config = ConfigDict(from_attributes=True)

    name: str
    event: int
    value: int | float


class LeagueSnapshotResponse(BaseModel):
    """Consolidated league payload for charts and leaderboards."""

    cumulative_data: list[dict[str, int | float | None]]
    overall_rank_data: list[dict[str, int | float | None]]
    league_rank_data: list[dict[str, int | float | None]]
    series_keys: list[str]
    series_by_participant: dict[str, list[SeriesPointResponse]]
    chips_by_participant: dict[str, list[int]]
    chips_meta_by_participant: dict[str, dict[int, list[str]]]
    chips_by_period: dict[int, list[str]]
    codes_by_participant: dict[str, str]
    best_periods: list[LeagueRecordResponse]
    worst_periods: list[LeagueRecordResponse]
    bench_waste: list[LeagueRecordResponse]
    latest_period: int | None
    live_override_applied: bool
    failures: list[str]

    @classmethod
    def from_snapshot(cls, snapshot: LeagueSnapshot) -> "LeagueSnapshotResponse":
        return cls(
            cumulative_data=rows_to_json(snapshot.cumulative_rows),
            overall_rank_data=rows_to_json(snapshot.overall_rank_rows),
            league_rank_data=rows_to_json(snapshot.league_rank_rows),
            series_keys=snapshot.series_keys,
            series_by_participant={
                name: [SeriesPointResponse.model_validate(e) for e in entries]
                for name, entries in snapshot.series_by_participant.items()
            },
            chips_by_participant=snapshot.chips_by_participant,
            chips_meta_by_participant=snapshot.chips_meta_by_participant,
            chips_by_period=snapshot.chips_by_period,
            codes_by_participant=snapshot.codes_by_participant,
            best_periods=[LeagueRecordResponse.model_validate(r) for r in snapshot.best_periods],
            worst_periods=[LeagueRecordResponse.model_validate(r) for r in snapshot.worst_periods],
            bench_waste=[LeagueRecordResponse.model_validate(r) for r in snapshot.bench_waste],
            latest_period=snapshot.latest_period,
            live_override_applied=snapshot.live_override_applied,
            failures=snapshot.failures,
        )


class RecordEntryResponse(BaseModel):
    """A record board row with a link to the manager's gameweek page."""

    name: str
    code: str
    event: int
    value: int | float
    link: str


class RecordListingResponse(BaseModel):
    """Response for GET /api/v1/league/records/{record}."""

    record: str
    title: str
    unit: str
    value_label: str
    entries: list[RecordEntryResponse]

    @classmethod
    def build(
        cls,
        definition: RecordDefinition,
        records: list[LeagueRecord],
        codes: dict[str, str],
    ) -> "RecordListingResponse":
        entries = []
        for r in records:
            code = codes.get(r.name, "")
            entries.append(
                RecordEntryResponse(
                    name=r.name,
                    code=code,
                    event=r.event,
                    value=r.value,
                    link=ENTRY_EVENT_URL.format(code=code, event=r.event),
                )
            )
        return cls(
            record=definition.key,
            title=definition.title,
            unit=definition.unit,
            value_label=definition.value_label,
            entries=entries,
        )
