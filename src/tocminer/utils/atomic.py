"""
Atomic file writes for persisted monitor snapshots.

The payload goes to a temporary sibling of the target, is fsynced, and is
then moved over the target, so a concurrent ``stats`` run never reads a
half-written snapshot.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Union

import structlog

logger = structlog.get_logger(__name__)


def _discard(path: Optional[Path]) -> None:
    if path is None or not path.exists():
        return
    try:
        path.unlink()
    except OSError as e:
        logger.warning("Could not remove temporary snapshot", path=str(path), error=str(e))


def atomic_write_bytes(target: Union[str, Path], payload: bytes) -> None:
    """
    Replace ``target`` with ``payload`` in one step.

    Raises:
        OSError: If the payload cannot be written or moved into place
    """
    target = Path(target)
    tmp: Optional[Path] = None
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
        tmp = Path(name)
        with os.fdopen(fd, "wb") as fh:
            fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())

        try:
            os.replace(tmp, target)
        except OSError as e:
            # rename(2) cannot cross devices
            logger.warning("Rename failed, copying snapshot instead", target=str(target), error=str(e))
            shutil.move(str(tmp), str(target))
    except OSError as e:
        _discard(tmp)
        raise OSError(f"Could not write {target}: {e}") from e

    logger.debug("Wrote snapshot", target=str(target), size=len(payload))
