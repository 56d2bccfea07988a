"""Member records, codec, and digest persistence."""

from serverset.core.digest import Digest, load_digest, save_digest
from serverset.core.member import (
    Endpoint,
    Member,
    decode_member,
    decode_members,
    encode_member,
    encode_members,
)

__all__ = [
    # Member
    "Endpoint",
    "Member",
    "decode_member",
    "decode_members",
    "encode_member",
    "encode_members",
    # Digest
    "Digest",
    "load_digest",
    "save_digest",
]
