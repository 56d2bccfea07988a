"""
Random Member Selection

Picks one live child of a serverset uniformly at random and resolves it
to an endpoint. Children can vanish between listing and reading under
churn; such races are retried with exponential backoff up to a fixed
number of attempts.
"""

import logging
import random
import time
from typing import Callable, Optional

from kazoo.exceptions import NoNodeError

from serverset.commands import child_path
from serverset.config import SelectConfig
from serverset.core.member import Endpoint, Member, decode_member
from serverset.errors import (
    EmptySetError,
    MemberDecodeError,
    MissingPortError,
    SelectionExhaustedError,
    UninitializedSetError,
)

logger = logging.getLogger(__name__)


class Selector:
    """Selects a random member of a serverset."""

    def __init__(
        self,
        session,
        config: Optional[SelectConfig] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the selector.

        Args:
            session: Connected Session (or anything with children/get)
            config: Retry policy
            rng: Random source; a fresh unseeded generator if None
            sleep: Called with the backoff delay between attempts
        """
        self.session = session
        self.config = config or SelectConfig()
        self.rng = rng or random.Random()
        self.sleep = sleep

    def pick_member(self, path: str) -> Member:
        """
        Pick and decode one random member of ``path``.

        Raises:
            UninitializedSetError: If ``path`` does not exist
            EmptySetError: If ``path`` has no children
            SelectionExhaustedError: If every attempt raced with churn
        """
        for attempt in range(1, self.config.max_attempts + 1):
            try:
                children = self.session.children(path)
            except NoNodeError:
                raise UninitializedSetError(f"Uninitialized serverset at {path}")

            if not children:
                raise EmptySetError(f"No servers found in set {path}")

            name = self.rng.choice(sorted(children))
            node = child_path(path, name)

            try:
                return decode_member(self.session.get(node))
            except NoNodeError:
                logger.warning(f"Node {node} vanished before it could be read")
            except MemberDecodeError as e:
                logger.warning(f"Failed to decode member {node}: {e}")

            if attempt < self.config.max_attempts:
                self.sleep(self.config.backoff(attempt))

        raise SelectionExhaustedError(
            f"Gave up selecting from {path} after {self.config.max_attempts} attempts"
        )

    def select(self, path: str, port_name: Optional[str] = None) -> Endpoint:
        """
        Resolve a random member of ``path`` to an endpoint.

        Args:
            path: Serverset path
            port_name: Named auxiliary port; the service endpoint if None

        Raises:
            MissingPortError: If the chosen member lacks ``port_name``
        """
        member = self.pick_member(path)
        if port_name is None:
            return member.service_endpoint

        try:
            return member.endpoint_for(port_name)
        except KeyError:
            raise MissingPortError(f"Endpoint missing {port_name} port.")
