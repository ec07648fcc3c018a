"""
Artifact Partitioning Scheme
Maps (user, artifact, timestamp) to blob paths, and enumerates the date folders
to probe when the timestamp is unknown at read time.

    users/{user_id}/{date_folder}/{artifact_id}.png
    users/{user_id}/{date_folder}/{artifact_id}.json
"""

from datetime import datetime, timedelta, timezone
from typing import List

DATE_FOLDER_FORMAT = "%Y-%m-%d"


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def date_folder(moment: datetime) -> str:
    """Partition key (UTC calendar day) for a write timestamp."""
    return _as_utc(moment).strftime(DATE_FOLDER_FORMAT)


def artifact_dir(user_id: str, folder: str) -> str:
    return f"users/{user_id}/{folder}"


def artifact_image_path(user_id: str, folder: str, artifact_id: str) -> str:
    return f"{artifact_dir(user_id, folder)}/{artifact_id}.png"


def artifact_metadata_path(user_id: str, folder: str, artifact_id: str) -> str:
    return f"{artifact_dir(user_id, folder)}/{artifact_id}.json"


def candidate_date_folders(now: datetime, lookback_days: int = 7) -> List[str]:
    """
    Date folders to probe, newest first: today and the preceding days.

    Artifacts older than the window are not reachable by probing.
    """
    today = _as_utc(now)
    return [date_folder(today - timedelta(days=offset)) for offset in range(max(lookback_days, 1))]


def artifact_url(user_id: str, artifact_id: str) -> str:
    """Externally addressable reference served by the artifact proxy route."""
    return f"/artifact/{user_id}/{artifact_id}"
