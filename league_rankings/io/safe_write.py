#!/usr/bin/env python3
"""
Atomic table and report writes.

Every write goes to a temporary file beside the destination, is
checksummed, and is then renamed over the destination so readers never
see a half-written table.
"""

import hashlib
import json
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union
import logging

import pandas as pd

logger = logging.getLogger(__name__)


def compute_file_checksum(file_path: Path, algorithm: str = 'md5') -> str:
    """
    Compute checksum for a file.

    Args:
        file_path: Path to the file
        algorithm: Hash algorithm ('md5', 'sha1', 'sha256')

    Returns:
        Hexadecimal checksum string
    """
    hash_obj = hashlib.new(algorithm)

    with open(file_path, 'rb') as f:
        for chunk in iter(lambda: f.read(4096), b""):
            hash_obj.update(chunk)

    return hash_obj.hexdigest()


def _atomic_write(path: Union[str, Path], fmt: str, write: Callable[[Path], None],
                  log: Optional[logging.Logger]) -> Dict[str, Any]:
    log = log or logger
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(path.suffix + '.tmp')

    try:
        write(temp_path)
        checksum = compute_file_checksum(temp_path)
        size_bytes = temp_path.stat().st_size
        temp_path.replace(path)

        log.debug(f"Wrote {fmt.upper()}: {path} ({size_bytes:,} bytes, MD5: {checksum})")
        return {
            "path": path,
            "checksum": checksum,
            "size_bytes": size_bytes,
            "format": fmt
        }

    except Exception as e:
        if temp_path.exists():
            temp_path.unlink()
        log.error(f"Failed to write {fmt.upper()} to {path}: {e}")
        raise


def safe_write_csv(df: pd.DataFrame, path: Union[str, Path],
                   log: Optional[logging.Logger] = None) -> Dict[str, Any]:
    """
    Safely write DataFrame to CSV with atomic operation and checksum.

    Args:
        df: pandas DataFrame to write
        path: Destination file path
        log: Optional logger instance

    Returns:
        Dictionary with path, checksum, and size information
    """
    return _atomic_write(path, "csv", lambda tmp: df.to_csv(tmp, index=False), log)


def safe_write_json(data: Union[dict, list], path: Union[str, Path],
                    log: Optional[logging.Logger] = None) -> Dict[str, Any]:
    """
    Safely write JSON data (run summaries, integrity reports).

    Args:
        data: Dictionary or list to write as JSON
        path: Destination file path
        log: Optional logger instance

    Returns:
        Dictionary with path, checksum, and size information
    """
    def write(tmp: Path) -> None:
        with open(tmp, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=str)

    return _atomic_write(path, "json", write, log)

