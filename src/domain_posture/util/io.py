"""Safe file I/O utilities.

Helper functions for reading/writing JSON with proper error handling.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


def ensure_dir(path: Path) -> Path:
    """Ensure directory exists, create if needed. Returns the path."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def write_json(path: Path, data: Any, indent: int = 2) -> None:
    """Write data to JSON file.

    Writes to a sibling temp file first and renames, so a reader never
    sees half a document.
    """
    path = Path(path)
    ensure_dir(path.parent)
    tmp_path = path.with_suffix(path.suffix + '.tmp')

    try:
        with open(tmp_path, 'w') as f:
            json.dump(data, f, indent=indent, default=str)
        tmp_path.replace(path)
        logger.debug(f"Wrote JSON to {path}")
    except (OSError, TypeError, ValueError) as e:
        logger.error(f"Failed to write JSON to {path}: {e}")
        raise


def read_json(path: Path) -> Optional[Any]:
    """Read JSON file safely. Returns None if file doesn't exist or is invalid."""
    path = Path(path)

    if not path.exists():
        return None

    try:
        with open(path, 'r') as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to read JSON from {path}: {e}")
        return None
