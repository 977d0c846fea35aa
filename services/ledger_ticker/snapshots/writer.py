"""
Snapshot Writer

Writes JSON snapshot files atomically: the payload goes to a temporary
file in the target directory, which then replaces the target in one
rename. Readers see either the old file or the new one, never a partial
write.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def write_json_atomic(data: Any, path: Path | str, indent: int = 2) -> Path:
    """
    Serialize `data` to JSON at `path` atomically.

    Decimal and datetime values are written as strings.

    Returns:
        The written path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=indent, default=str)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.info(f"Wrote snapshot {path}")
    return path
