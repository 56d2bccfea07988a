"""Raw content publishing and retrieval."""

import logging

from kazoo.exceptions import KazooException, NodeExistsError, NoNodeError

from serverset.errors import PublishError

logger = logging.getLogger(__name__)


def publish(session, path: str, content: bytes) -> bool:
    """
    Write ``content`` to ``path``, creating the node if it is absent.

    If another client creates the node between our set and create, the
    content is set once more over theirs.

    Returns:
        True if the node was created, False if it was overwritten

    Raises:
        PublishError: If the parent path is missing or the write fails
    """
    try:
        session.set(path, content)
        logger.info(f"Updated {path} ({len(content)} bytes)")
        return False
    except NoNodeError:
        pass
    except KazooException as e:
        raise PublishError(f"Failed to write {path}: {e}") from e

    try:
        session.create(path, content)
    except NoNodeError:
        raise PublishError(f"Parent znode of {path} does not exist.")
    except NodeExistsError:
        logger.info(f"{path} was created concurrently, overwriting")
        try:
            session.set(path, content)
        except KazooException as e:
            raise PublishError(f"Failed to write {path}: {e}") from e
        return False
    except KazooException as e:
        raise PublishError(f"Failed to create {path}: {e}") from e

    logger.info(f"Created {path} ({len(content)} bytes)")
    return True


def fetch(session, path: str) -> bytes:
    """
    Read the raw content stored at ``path``.

    Raises:
        PublishError: If the node does not exist or the read fails
    """
    try:
        return session.get(path) or b""
    except NoNodeError:
        raise PublishError(f"Node {path} does not exist.")
    except KazooException as e:
        raise PublishError(f"Failed to read {path}: {e}") from e
