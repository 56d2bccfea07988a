"""
Member Records and Codec

This module defines the endpoint records published by serverset members
and the JSON codec used both for znode payloads and for digest files.

Payload format (one member):
    {
        "serviceEndpoint": {"host": "10.0.0.1", "port": 9090},
        "additionalEndpoints": {"http": {"host": "10.0.0.1", "port": 8080}},
        "status": "ALIVE",
        "shard": 0
    }

Missing optional fields decode to their zero values. serviceEndpoint is
required.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from serverset.errors import MemberDecodeError

PORT_MIN = 0
PORT_MAX = 0xFFFF
SHARD_MIN = -(2**63)
SHARD_MAX = 2**63 - 1


@dataclass(frozen=True)
class Endpoint:
    """A network endpoint."""

    host: str
    port: int

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"

    def to_dict(self) -> dict:
        return {"host": self.host, "port": self.port}

    @classmethod
    def from_dict(cls, data: Any, context: str = "endpoint") -> "Endpoint":
        """Build an endpoint from decoded JSON, validating field types."""
        if not isinstance(data, dict):
            raise MemberDecodeError(f"{context} must be an object, got {type(data).__name__}")

        host = data.get("host", "")
        port = data.get("port", 0)

        if not isinstance(host, str):
            raise MemberDecodeError(f"{context}.host must be a string")
        # bool is an int subclass
        if not isinstance(port, int) or isinstance(port, bool):
            raise MemberDecodeError(f"{context}.port must be an integer")
        if not PORT_MIN <= port <= PORT_MAX:
            raise MemberDecodeError(f"{context}.port out of range: {port}")

        return cls(host=host, port=port)


@dataclass(frozen=True)
class Member:
    """One registered process instance in a serverset."""

    service_endpoint: Endpoint
    additional_endpoints: Mapping[str, Endpoint] = field(default_factory=dict)
    status: str = ""
    shard: int = 0

    def endpoint_for(self, port_name: str) -> Endpoint:
        """
        Look up a named auxiliary endpoint.

        Raises:
            KeyError: If the member does not advertise ``port_name``
        """
        return self.additional_endpoints[port_name]

    def to_dict(self) -> dict:
        """Convert to the JSON-compatible wire layout."""
        return {
            "status": self.status,
            "additionalEndpoints": {
                name: endpoint.to_dict()
                for name, endpoint in self.additional_endpoints.items()
            },
            "serviceEndpoint": self.service_endpoint.to_dict(),
            "shard": self.shard,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Member":
        """
        Build a member from decoded JSON.

        Raises:
            MemberDecodeError: If the structure or field types are invalid
        """
        if not isinstance(data, dict):
            raise MemberDecodeError(f"Member must be an object, got {type(data).__name__}")

        if "serviceEndpoint" not in data:
            raise MemberDecodeError("Member has no serviceEndpoint")
        service_endpoint = Endpoint.from_dict(data["serviceEndpoint"], "serviceEndpoint")

        raw_additional = data.get("additionalEndpoints")
        if raw_additional is None:
            raw_additional = {}
        if not isinstance(raw_additional, dict):
            raise MemberDecodeError("additionalEndpoints must be an object")
        additional = {
            name: Endpoint.from_dict(value, f"additionalEndpoints.{name}")
            for name, value in raw_additional.items()
        }

        status = data.get("status")
        if status is None:
            status = ""
        if not isinstance(status, str):
            raise MemberDecodeError("status must be a string")

        shard = data.get("shard")
        if shard is None:
            shard = 0
        if not isinstance(shard, int) or isinstance(shard, bool):
            raise MemberDecodeError("shard must be an integer")
        if not SHARD_MIN <= shard <= SHARD_MAX:
            raise MemberDecodeError(f"shard out of range: {shard}")

        return cls(
            service_endpoint=service_endpoint,
            additional_endpoints=additional,
            status=status,
            shard=shard,
        )


def decode_member(data: bytes) -> Member:
    """
    Decode a single znode payload into a Member.

    Args:
        data: Raw payload bytes (UTF-8 JSON)

    Returns:
        Decoded member

    Raises:
        MemberDecodeError: If the payload is not a valid member record
    """
    if data is None:
        raise MemberDecodeError("Empty payload")
    try:
        parsed = json.loads(data)
    except (UnicodeDecodeError, ValueError, RecursionError) as e:
        raise MemberDecodeError(f"Invalid JSON: {e}") from e
    return Member.from_dict(parsed)


def encode_member(member: Member) -> bytes:
    """Encode a single member as a znode payload."""
    return json.dumps(member.to_dict(), sort_keys=True).encode("utf-8")


def decode_members(data: bytes) -> Dict[str, Member]:
    """
    Decode a JSON object mapping names to members. JSON null decodes
    to an empty mapping.

    Raises:
        MemberDecodeError: If the document or any member is invalid
    """
    try:
        parsed = json.loads(data)
    except (UnicodeDecodeError, ValueError, RecursionError) as e:
        raise MemberDecodeError(f"Invalid JSON: {e}") from e

    # An empty digest may have been written as null
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise MemberDecodeError(f"Expected an object, got {type(parsed).__name__}")

    members = {}
    for name, value in parsed.items():
        try:
            members[name] = Member.from_dict(value)
        except MemberDecodeError as e:
            raise MemberDecodeError(f"{name}: {e}") from e
    return members


def encode_members(members: Mapping[str, Member]) -> bytes:
    """Encode a name-to-member mapping as a JSON object."""
    return json.dumps(
        {name: member.to_dict() for name, member in members.items()},
        sort_keys=True,
    ).encode("utf-8")
