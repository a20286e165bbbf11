from __future__ import annotations

import os

import httpx
import pytest

from vehicle_stream.adapters.config import DEFAULT_FEED_URL, DEFAULT_SCHEDULE_URL


def _reachable(url: str) -> bool:
    try:
        resp = httpx.head(url, timeout=3.0, follow_redirects=True)
    except httpx.HTTPError:
        return False
    return resp.status_code < 500


@pytest.fixture(scope="session")
def feed_url() -> str:
    return os.getenv("GTFS_RT_VEHICLE_POSITIONS_URL") or DEFAULT_FEED_URL


@pytest.fixture(scope="session")
def schedule_url() -> str:
    return os.getenv("GTFS_SCHEDULE_URL") or DEFAULT_SCHEDULE_URL


@pytest.fixture(scope="session")
def require_upstream(feed_url: str, schedule_url: str) -> None:
    """Skip unless the live feed and schedule are reachable.

    Set REQUIRE_UPSTREAM=1 to turn an unreachable upstream into a failure.
    """

    for url in (feed_url, schedule_url):
        if _reachable(url):
            continue
        msg = f"Upstream not reachable at {url}"
        if os.getenv("REQUIRE_UPSTREAM"):
            pytest.fail(msg, pytrace=False)
        pytest.skip(f"{msg}; skipping integration tests")
