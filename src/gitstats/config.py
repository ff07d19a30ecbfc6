from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from pathlib import Path

import yaml
from dotenv import load_dotenv

BUCKETS = ("day", "week", "month")
UNBOUNDED = ("all", "beginning", "present", "now", "today")


def parse_date_bound(value: str, *, end: bool = False) -> datetime | None:
    """Parse a date-range bound; None means unbounded.

    A bare date covers the whole day, so as an end bound it means the last
    instant of that day. Naive times are taken as UTC.
    """
    if not value or value.lower() in UNBOUNDED:
        return None
    try:
        day = date.fromisoformat(value)
    except ValueError:
        day = None
    if day is not None:
        return datetime.combine(day, time.max if end else time.min, tzinfo=timezone.utc)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(
            f"invalid date {value!r}, expected ISO 8601 or one of {', '.join(UNBOUNDED)}"
        ) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class TraversalConfig:
    all_refs: bool = False  # HEAD only unless set


@dataclass
class DateRange:
    start: str = ""
    end: str = ""


@dataclass
class AggregationConfig:
    bucket: str = "day"  # day, week, month
    rename_threshold: int = 50  # percent similarity
    author_aliases: dict[str, str] = field(default_factory=dict)


@dataclass
class PerformanceConfig:
    workers: int = field(default_factory=lambda: os.cpu_count() or 1)
    batch_size: int = 64


@dataclass
class Config:
    traversal: TraversalConfig = field(default_factory=TraversalConfig)
    date_range: DateRange = field(default_factory=DateRange)
    aggregation: AggregationConfig = field(default_factory=AggregationConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)

    def validate(self) -> None:
        if self.aggregation.bucket not in BUCKETS:
            raise ValueError(
                f"aggregation.bucket must be one of {', '.join(BUCKETS)}, "
                f"got {self.aggregation.bucket!r}"
            )
        if not 0 < self.aggregation.rename_threshold <= 100:
            raise ValueError("aggregation.rename_threshold must be between 1 and 100")
        if self.performance.batch_size < 1:
            raise ValueError("performance.batch_size must be positive")
        for name in ("start", "end"):
            try:
                parse_date_bound(getattr(self.date_range, name), end=(name == "end"))
            except ValueError as exc:
                raise ValueError(f"date_range.{name}: {exc}") from exc


def load_config(config_path: str | Path | None = None) -> Config:
    load_dotenv()

    raw: dict = {}
    if config_path is not None:
        config_path = Path(config_path)
        with config_path.open() as f:
            raw = yaml.safe_load(f) or {}

    trav_raw = raw.get("traversal", {})
    traversal = TraversalConfig(all_refs=bool(trav_raw.get("all_refs", False)))

    dr_raw = raw.get("date_range", {})
    date_range = DateRange(
        start=str(dr_raw.get("start", "") or ""),
        end=str(dr_raw.get("end", "") or ""),
    )

    agg_raw = raw.get("aggregation", {})
    aliases = agg_raw.get("author_aliases", {}) or {}
    aggregation = AggregationConfig(
        bucket=agg_raw.get("bucket", "day"),
        rename_threshold=int(agg_raw.get("rename_threshold", 50)),
        author_aliases={str(k).strip().lower(): str(v).strip().lower() for k, v in aliases.items()},
    )

    perf_raw = raw.get("performance", {})
    workers = perf_raw.get("workers")
    env_workers = os.environ.get("GITSTATS_WORKERS")
    if env_workers:
        workers = env_workers
    performance = PerformanceConfig(batch_size=int(perf_raw.get("batch_size", 64)))
    if workers is not None:
        performance.workers = int(workers)

    config = Config(
        traversal=traversal,
        date_range=date_range,
        aggregation=aggregation,
        performance=performance,
    )
    config.validate()
    return config
