from __future__ import annotations

import logging
import os
import struct
from dataclasses import dataclass

import httpx
from google.protobuf.message import DecodeError as ProtobufDecodeError
from google.transit import gtfs_realtime_pb2

from vehicle_stream.app.ports.output import IRealtimeFeedProvider
from vehicle_stream.domain.exceptions import DecodeError, FetchError
from vehicle_stream.domain.models.geo import GeoPoint
from vehicle_stream.domain.models.realtime import FeedSnapshot, VehicleObservation

logger = logging.getLogger(__name__)


def parse_header_spec(raw: str | None) -> dict[str, str]:
    """Parse 'Key:Value;Key2:Value2' into a header dict, skipping junk parts."""

    raw = (raw or "").strip()
    if not raw:
        return {}
    headers: dict[str, str] = {}
    for part in raw.split(";"):
        part = part.strip()
        if not part:
            continue
        if ":" not in part:
            continue
        k, v = part.split(":", 1)
        k = k.strip()
        v = v.strip()
        if k:
            headers[k] = v
    return headers


def shortest_float32(value: float) -> float:
    """Shortest decimal that reads back as the same 32-bit float.

    GTFS-RT positions are float32; widening them to a double would put noise
    like 45.79999923706055 on the wire instead of 45.8.
    """

    single = struct.unpack("f", struct.pack("f", value))[0]
    for digits in range(1, 10):
        candidate = float(f"{single:.{digits}g}")
        if struct.unpack("f", struct.pack("f", candidate))[0] == single:
            return candidate
    return single


@dataclass(slots=True)
class HttpGtfsRealtimeFeedProvider(IRealtimeFeedProvider):
    """Fetches a GTFS-Realtime VehiclePositions feed over HTTP.

    Env vars (used when the matching field is not set):
      - GTFS_RT_VEHICLE_POSITIONS_URL: URL to a GTFS-RT VehiclePositions feed
      - GTFS_RT_HEADERS: optional headers, as 'Key:Value;Key2:Value2'

    Notes:
      - No caching here; the update loop deduplicates by feed timestamp.
      - `transport` exists so tests can plug in an httpx.MockTransport.
    """

    url: str | None = None
    headers_raw: str | None = None
    timeout_s: float = 10.0
    transport: httpx.AsyncBaseTransport | None = None

    def __post_init__(self) -> None:
        if self.url is None:
            self.url = os.getenv("GTFS_RT_VEHICLE_POSITIONS_URL")
        if self.headers_raw is None:
            self.headers_raw = os.getenv("GTFS_RT_HEADERS")

    async def fetch(self) -> FeedSnapshot:
        if not self.url:
            raise FetchError("GTFS_RT_VEHICLE_POSITIONS_URL is not configured")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_s, transport=self.transport
            ) as client:
                resp = await client.get(
                    self.url, headers=parse_header_spec(self.headers_raw)
                )
                resp.raise_for_status()
                content = resp.content
        except httpx.HTTPStatusError as exc:
            raise FetchError(
                f"Unexpected response code: {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"Failed to fetch GTFS Realtime feed: {exc}") from exc

        return parse_vehicle_positions(content)


def parse_vehicle_positions(content: bytes) -> FeedSnapshot:
    """Decode a FeedMessage and keep only entities with a vehicle position."""

    feed = gtfs_realtime_pb2.FeedMessage()
    try:
        feed.ParseFromString(content)
    except ProtobufDecodeError as exc:
        raise DecodeError(f"Failed to parse protobuf: {exc}") from exc

    header_ts = 0
    if feed.HasField("header") and feed.header.HasField("timestamp"):
        header_ts = int(feed.header.timestamp)

    # (vehicle_id, route_id, trip_id, lat, lon, vehicle timestamp)
    rows: list[tuple[str, str, str, float, float, int | None]] = []
    for ent in feed.entity:
        if not ent.HasField("vehicle"):
            continue

        v = ent.vehicle
        if not v.HasField("position"):
            continue

        lat = shortest_float32(v.position.latitude)
        lon = shortest_float32(v.position.longitude)
        if not GeoPoint.is_valid(lat, lon):
            logger.debug("Skipping entity %s with invalid position", ent.id)
            continue

        trip_id = ""
        route_id = ""
        if v.HasField("trip"):
            trip_id = v.trip.trip_id
            route_id = v.trip.route_id

        vehicle_id = ""
        if v.HasField("vehicle"):
            vehicle_id = v.vehicle.id

        timestamp = None
        if v.HasField("timestamp") and int(v.timestamp) > 0:
            timestamp = int(v.timestamp)

        rows.append((vehicle_id, route_id, trip_id, lat, lon, timestamp))

    # Feeds without a header timestamp fall back to the newest vehicle fix.
    feed_ts = header_ts
    if not feed_ts:
        feed_ts = max((r[5] for r in rows if r[5] is not None), default=0)

    return FeedSnapshot(
        timestamp=feed_ts,
        observations=tuple(
            VehicleObservation(
                vehicle_id=vehicle_id,
                route_id=route_id,
                trip_id=trip_id,
                lat=lat,
                lon=lon,
                feed_timestamp=feed_ts,
                timestamp=timestamp,
            )
            for vehicle_id, route_id, trip_id, lat, lon, timestamp in rows
        ),
    )
