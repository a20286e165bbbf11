from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_FEED_URL = "https://zet.hr/gtfs-rt-protobuf"
DEFAULT_SCHEDULE_URL = "https://www.zet.hr/gtfs-scheduled/latest"


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    return float(raw)


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip()


@dataclass(frozen=True, slots=True)
class RuntimeConfig:
    feed_url: str
    feed_headers: str
    feed_timeout_s: float
    schedule_url: str
    schedule_file: str
    schedule_version_header: str
    schedule_version_prefix: str
    schedule_timeout_s: float
    update_interval_s: float
    stream_poll_interval_s: float
    update_loop_enabled: bool
    reveal_errors: bool = False

    @staticmethod
    def from_env() -> "RuntimeConfig":
        """Build the config from environment variables.

        Env vars:
          - GTFS_RT_VEHICLE_POSITIONS_URL: GTFS-RT VehiclePositions feed
          - GTFS_RT_HEADERS: optional headers, as 'Key:Value;Key2:Value2'
          - GTFS_RT_TIMEOUT_S: feed request timeout (default 10)
          - GTFS_SCHEDULE_URL: static GTFS zip (HEAD must expose a version header)
          - GTFS_SCHEDULE_FILE: file inside the zip holding trips (default trips.txt)
          - GTFS_SCHEDULE_VERSION_HEADER: default Content-Disposition
          - GTFS_SCHEDULE_VERSION_PREFIX: a token must start with this to count
          - GTFS_SCHEDULE_TIMEOUT_S: archive request timeout (default 60)
          - UPDATE_INTERVAL_S: seconds between feed fetches (default 2)
          - STREAM_POLL_INTERVAL_S: SSE subscriber check cadence (default 1)
          - UPDATE_LOOP_ENABLED: 0|false disables the background loop
          - VEHICLE_STREAM_REVEAL_ERRORS: 1|true puts exception messages in 500s
        """

        return RuntimeConfig(
            feed_url=_env_str("GTFS_RT_VEHICLE_POSITIONS_URL", DEFAULT_FEED_URL),
            feed_headers=_env_str("GTFS_RT_HEADERS", ""),
            feed_timeout_s=_env_float("GTFS_RT_TIMEOUT_S", 10.0),
            schedule_url=_env_str("GTFS_SCHEDULE_URL", DEFAULT_SCHEDULE_URL),
            schedule_file=_env_str("GTFS_SCHEDULE_FILE", "trips.txt"),
            schedule_version_header=_env_str(
                "GTFS_SCHEDULE_VERSION_HEADER", "Content-Disposition"
            ),
            schedule_version_prefix=os.getenv(
                "GTFS_SCHEDULE_VERSION_PREFIX", "attachment; filename="
            ),
            schedule_timeout_s=_env_float("GTFS_SCHEDULE_TIMEOUT_S", 60.0),
            update_interval_s=_env_float("UPDATE_INTERVAL_S", 2.0),
            stream_poll_interval_s=_env_float("STREAM_POLL_INTERVAL_S", 1.0),
            update_loop_enabled=_env_bool("UPDATE_LOOP_ENABLED", True),
            reveal_errors=_env_bool("VEHICLE_STREAM_REVEAL_ERRORS"),
        )
