"""Wayback Machine snapshot lookup for the archival strategy."""

import logging

import httpx

logger = logging.getLogger(__name__)


class SnapshotLookupError(Exception):
    """The availability API did not give a usable answer."""


async def lookup_snapshot(
    client: httpx.AsyncClient, availability_url: str, target_url: str
) -> str | None:
    """Return the URL of the closest archived snapshot of *target_url*.

    Returns None when the archive reports no snapshot. Raises
    SnapshotLookupError when the API itself fails or answers garbage.
    """
    resp = await client.get(availability_url, params={"url": target_url})
    if resp.status_code != 200:
        raise SnapshotLookupError(f"availability API returned {resp.status_code}")

    try:
        data = resp.json()
    except ValueError as exc:
        raise SnapshotLookupError("availability API returned invalid JSON") from exc

    if not isinstance(data, dict):
        raise SnapshotLookupError("availability API returned unexpected payload")

    closest = (data.get("archived_snapshots") or {}).get("closest") or {}
    if not closest.get("available") or not closest.get("url"):
        return None

    # Snapshots of error pages are archived too
    status = str(closest.get("status", "200"))
    if not status.startswith(("2", "3")):
        logger.debug(f"Closest snapshot for {target_url} has status {status}")
        return None

    return closest["url"]


def to_raw_snapshot_url(snapshot_url: str) -> str:
    """Use the id_ modifier so the archive serves the page without its toolbar.

    http://web.archive.org/web/20240101000000/https://example.com/
    -> https://web.archive.org/web/20240101000000id_/https://example.com/
    """
    if snapshot_url.startswith("http://"):
        snapshot_url = "https://" + snapshot_url[len("http://"):]

    if "/web/" not in snapshot_url:
        return snapshot_url

    prefix, ts_and_url = snapshot_url.split("/web/", 1)
    slash_idx = ts_and_url.find("/")
    if slash_idx <= 0:
        return snapshot_url

    ts = ts_and_url[:slash_idx]
    rest = ts_and_url[slash_idx:]
    if not ts[:14].isdigit():
        return snapshot_url
    # Replace any existing modifier (im_, if_, ...) with id_
    return f"{prefix}/web/{ts[:14]}id_{rest}"

