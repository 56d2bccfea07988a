"""
Digest Store

A digest is the last reconciled state of one serverset, persisted as a
single JSON object mapping child names to members. Other processes poll
the file's modification time to detect membership changes, so the file
is only ever replaced wholesale: the new content is written to a
temporary sibling and renamed over the target.
"""

import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Dict, Mapping

from serverset.core.member import Member, decode_members, encode_members
from serverset.errors import DigestError, MemberDecodeError

logger = logging.getLogger(__name__)

Digest = Dict[str, Member]


def load_digest(path: Path) -> Digest:
    """
    Load a digest file.

    Args:
        path: Digest file location

    Returns:
        The stored digest, or an empty digest if the file does not exist

    Raises:
        DigestError: If the file exists but cannot be read or parsed
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        logger.debug(f"No digest at {path}, starting empty")
        return {}
    except OSError as e:
        raise DigestError(f"Failed to read {path}: {e}") from e

    try:
        return decode_members(data)
    except MemberDecodeError as e:
        raise DigestError(f"Failed to decode json blob from {path}: {e}") from e


def save_digest(digest: Mapping[str, Member], path: Path) -> None:
    """
    Atomically replace the digest file.

    The previous file is left untouched if anything fails before the
    rename; only the temporary file is at risk.

    Raises:
        DigestError: If the temporary file cannot be written or renamed
    """
    path = Path(path)
    blob = encode_members(digest)

    try:
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
        )
    except OSError as e:
        raise DigestError(f"Failed to create temporary digest file: {e}") from e

    try:
        with os.fdopen(fd, "wb") as f:
            os.fchmod(f.fileno(), _target_mode(path))
            f.write(blob)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except OSError as e:
        _discard(tmp_name)
        raise DigestError(f"Failed to write new digest file {path}: {e}") from e

    logger.info(f"Wrote digest with {len(digest)} members to {path}")


def _target_mode(path: Path) -> int:
    """Mode for the new digest: the existing file's, else 0666 less the umask."""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def _discard(tmp_name: str) -> None:
    try:
        os.unlink(tmp_name)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to remove temporary digest file {tmp_name}: {e}")
