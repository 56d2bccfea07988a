"""
Digest Reconciliation

Mirrors a serverset into an on-disk digest. Members already present in
the previous digest are carried forward without being fetched again:
ephemeral child names are never reused, so a published record under a
given name is immutable. Only children absent from the previous digest
are read. The digest is rewritten only if the result differs, which
keeps the file's modification time usable as a change signal.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from kazoo.exceptions import (
    ConnectionClosedError,
    ConnectionLoss,
    KazooException,
    NoNodeError,
    SessionExpiredError,
    SessionMovedError,
)

from serverset.commands import child_path
from serverset.core.digest import Digest, load_digest, save_digest
from serverset.core.member import Member, decode_member
from serverset.errors import MemberDecodeError

logger = logging.getLogger(__name__)

# A pass that hits these cannot be trusted to cover the whole set
_SESSION_ERRORS = (
    ConnectionClosedError,
    ConnectionLoss,
    SessionExpiredError,
    SessionMovedError,
)


@dataclass
class ReconcileResult:
    """Summary of one reconciliation pass."""

    members: Dict[str, Member] = field(default_factory=dict)
    written: bool = False
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)  # Unreadable or vanished


class Reconciler:
    """Reconciles a serverset against a digest file."""

    def __init__(self, session):
        self.session = session

    def fetch_member(self, path: str) -> Member:
        """
        Read and decode one child.

        Raises:
            NoNodeError: If the child no longer exists
            MemberDecodeError: If the payload is malformed
        """
        return decode_member(self.session.get(path))

    def merge(self, path: str, children: List[str], previous: Digest) -> ReconcileResult:
        """
        Build the new digest for ``children`` from ``previous`` plus fresh reads.

        Names only present in ``previous`` are dropped by construction.
        """
        result = ReconcileResult()

        for name in children:
            if name in previous:
                result.members[name] = previous[name]
                continue

            node = child_path(path, name)
            try:
                result.members[name] = self.fetch_member(node)
            except NoNodeError:
                logger.debug(f"{node} disappeared during reconciliation")
                result.skipped.append(name)
                continue
            except MemberDecodeError as e:
                logger.warning(f"Failed to unmarshal member {node}: {e}")
                result.skipped.append(name)
                continue
            except _SESSION_ERRORS:
                raise
            except KazooException as e:
                logger.warning(f"Failed to read {node}: {e}")
                result.skipped.append(name)
                continue
            result.added.append(name)

        result.removed = sorted(set(previous) - set(result.members))
        return result

    def reconcile(self, path: str, digest_file: Path) -> ReconcileResult:
        """
        Bring ``digest_file`` in line with the current members of ``path``.

        Args:
            path: Serverset path
            digest_file: Digest location; created if absent

        Returns:
            ReconcileResult describing what changed

        Raises:
            DigestError: If the digest cannot be read or written
            KazooException: If listing the children fails for any reason
                other than the path being absent
                or the session is lost while reading a child
        """
        previous = load_digest(digest_file)

        try:
            children = self.session.children(path)
        except NoNodeError:
            logger.info(f"{path} does not exist, writing empty digest")
            save_digest({}, digest_file)
            return ReconcileResult(written=True, removed=sorted(previous))

        result = self.merge(path, children, previous)

        if result.members != previous:
            save_digest(result.members, digest_file)
            result.written = True

        logger.info(
            f"Reconciled {path}: {len(result.added)} added, "
            f"{len(result.removed)} removed, {len(result.members)} total"
            + ("" if result.written else " (unchanged)")
        )
        return result
