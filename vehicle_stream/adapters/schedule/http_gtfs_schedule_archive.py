from __future__ import annotations

import csv
import io
import logging
import os
import zipfile
import zlib
from dataclasses import dataclass
from typing import Iterable

import httpx

from vehicle_stream.app.ports.output import IScheduleArchiveSource
from vehicle_stream.domain.exceptions import ArchiveError
from vehicle_stream.domain.models.trip import ScheduleArchive, TripMetadata

logger = logging.getLogger(__name__)

# Column positions used when trips.txt has no recognizable header.
_POSITIONAL_COLUMNS = {
    "route_id": 0,
    "trip_id": 2,
    "trip_headsign": 3,
    "direction_id": 5,
}


def _column_indexes(header: list[str]) -> dict[str, int]:
    names = [h.strip().lower() for h in header]
    if all(col in names for col in _POSITIONAL_COLUMNS):
        return {col: names.index(col) for col in _POSITIONAL_COLUMNS}
    return dict(_POSITIONAL_COLUMNS)


def parse_trips_csv(rows: Iterable[list[str]]) -> dict[str, dict[str, TripMetadata]]:
    """Build route_id -> trip_id -> TripMetadata from trips.txt rows.

    The first row is the header.
    """

    it = iter(rows)
    header = next(it, None)
    if header is None:
        return {}
    cols = _column_indexes(header)

    def cell(row: list[str], name: str) -> str:
        i = cols[name]
        return row[i].strip() if i < len(row) else ""

    trips: dict[str, dict[str, TripMetadata]] = {}
    for row in it:
        route_id = cell(row, "route_id")
        trip_id = cell(row, "trip_id")
        if not route_id or not trip_id:
            continue
        trips.setdefault(route_id, {})[trip_id] = TripMetadata(
            headsign=cell(row, "trip_headsign"),
            direction=cell(row, "direction_id"),
        )
    return trips


def read_trips_from_zip(content: bytes, filename: str = "trips.txt") -> bytes:
    try:
        with zipfile.ZipFile(io.BytesIO(content)) as zf:
            names = zf.namelist()
            member = next(
                (n for n in names if n == filename or n.endswith("/" + filename)),
                None,
            )
            if member is None:
                raise ArchiveError(f"{filename} not present in schedule archive")
            try:
                return zf.read(member)
            except (zlib.error, NotImplementedError, EOFError) as exc:
                raise ArchiveError(f"Could not extract {member}: {exc}") from exc
    except zipfile.BadZipFile as exc:
        raise ArchiveError(f"Schedule archive is not a valid zip: {exc}") from exc


@dataclass(slots=True)
class HttpGtfsScheduleArchive(IScheduleArchiveSource):
    """Static GTFS zip published at a fixed URL.

    Env vars (used when the matching field is not set):
      - GTFS_SCHEDULE_URL: URL of the zip archive

    The server is expected to expose a version-identifying header (by default
    Content-Disposition, e.g. 'attachment; filename=zet-gtfs-scheduled-000-00369.zip')
    on both HEAD and GET.
    """

    url: str | None = None
    filename: str = "trips.txt"
    version_header: str = "Content-Disposition"
    timeout_s: float = 60.0
    transport: httpx.AsyncBaseTransport | None = None

    def __post_init__(self) -> None:
        if self.url is None:
            self.url = os.getenv("GTFS_SCHEDULE_URL")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout_s, transport=self.transport, follow_redirects=True
        )

    async def probe_version(self) -> str | None:
        if not self.url:
            return None
        try:
            async with self._client() as client:
                resp = await client.head(self.url)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise ArchiveError(f"Could not check schedule archive: {exc}") from exc
        return resp.headers.get(self.version_header)

    async def download(self) -> ScheduleArchive:
        if not self.url:
            raise ArchiveError("GTFS_SCHEDULE_URL is not configured")

        try:
            async with self._client() as client:
                resp = await client.get(self.url)
                resp.raise_for_status()
                content = resp.content
        except httpx.HTTPError as exc:
            raise ArchiveError(f"Could not fetch schedule archive: {exc}") from exc

        version = resp.headers.get(self.version_header, "")
        raw = read_trips_from_zip(content, self.filename)

        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ArchiveError(f"Could not decode {self.filename}: {exc}") from exc

        try:
            trips = parse_trips_csv(csv.reader(io.StringIO(text, newline="")))
        except csv.Error as exc:
            raise ArchiveError(f"Could not parse {self.filename}: {exc}") from exc

        archive = ScheduleArchive(version=version, trips=trips)
        logger.debug(
            "Parsed %d trips on %d routes from schedule archive (%s)",
            archive.trip_count,
            len(trips),
            version or "unversioned",
        )
        return archive
