"""JSON side-file storage for rate limit state.

The file is shared by every invocation of the CLI. There is no
cross-process lock; concurrent processes can overwrite each other's
updates, which only makes the advisory counter less precise.
"""

import json
import logging
import os
from pathlib import Path
from typing import Union

from shipscli.domain.interfaces.rate_limit_store import RateLimitStore
from shipscli.domain.models.rate_limit import RateLimitRecord

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT_FILE = Path.home() / ".shipscli" / "ratelimit.json"


class JsonFileRateLimitStore(RateLimitStore):
    """Stores a RateLimitRecord as a JSON document on disk."""

    def __init__(self, path: Union[str, Path] = DEFAULT_RATE_LIMIT_FILE):
        self.path = Path(path)

    def load(self) -> RateLimitRecord:
        try:
            if self.path.exists():
                data = json.loads(self.path.read_text(encoding="utf-8"))
                if isinstance(data, dict):
                    return RateLimitRecord.from_dict(data)
                logger.debug(f"Ignoring rate limit file {self.path}: not a JSON object")
        except (OSError, ValueError, TypeError) as e:
            logger.debug(f"Could not read rate limit file {self.path}: {e}")
        return RateLimitRecord()

    def save(self, record: RateLimitRecord) -> None:
        temp_path = self.path.with_suffix(".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(json.dumps(record.to_dict(), indent=2), encoding="utf-8")
            os.replace(str(temp_path), str(self.path))
        except (OSError, TypeError, ValueError) as e:
            logger.debug(f"Could not write rate limit file {self.path}: {e}")
