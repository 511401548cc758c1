"""Incremental skip: don't re-download what hasn't changed.

An artifact is skipped when it already exists locally and the remote
modification timestamp is not newer than the one recorded in the saved
document. Anything odd about the local copy means "download it again".
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from mapbox_backup.core.errors import LocalStateError
from mapbox_backup.core.types import FetchDecision, parse_timestamp
from mapbox_backup.observability.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class IncrementalFetchPolicy:
    """Decide SKIP or FETCH for one (item, artifact kind) pair.

    Args:
        timestamp_field: Field of the saved document holding its timestamp
        enabled: When False every artifact is fetched (``--force``)
    """

    timestamp_field: str = "modified"
    enabled: bool = True

    def decide(
        self,
        remote_modified: datetime | None,
        artifact_path: Path,
        stamp_path: Path | None = None,
    ) -> FetchDecision:
        """Compare the remote timestamp with the local copy.

        Args:
            remote_modified: Item's modification time from the listing
            artifact_path: Where the artifact is saved
            stamp_path: Document holding the local timestamp, when it is
                not the artifact itself (sprites use the style document)
        """
        if not self.enabled or remote_modified is None:
            return FetchDecision.FETCH

        if not artifact_path.exists():
            return FetchDecision.FETCH

        try:
            local_modified = self.read_local_timestamp(stamp_path or artifact_path)
        except LocalStateError as e:
            logger.debug(f"Ignoring local copy: {e}", extra={"path": str(e.path)})
            return FetchDecision.FETCH

        if remote_modified <= local_modified:
            return FetchDecision.SKIP
        return FetchDecision.FETCH

    def read_local_timestamp(self, path: Path) -> datetime:
        """Read the timestamp recorded inside a saved JSON document.

        Raises:
            LocalStateError: If the document is missing, unreadable,
                malformed or has no usable timestamp
        """
        try:
            with open(path, encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise LocalStateError(f"Cannot read {path.name}: {e}", path=path) from e

        if not isinstance(document, dict):
            raise LocalStateError(f"{path.name} is not a JSON object", path=path)

        try:
            return parse_timestamp(document.get(self.timestamp_field))
        except ValueError as e:
            raise LocalStateError(
                f"{path.name} has no usable '{self.timestamp_field}' field", path=path
            ) from e
