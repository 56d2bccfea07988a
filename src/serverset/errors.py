"""Exception hierarchy for serverset operations."""


class ServersetError(Exception):
    """Base class for all serverset errors."""

    pass


class EnsembleError(ServersetError):
    """Raised when a session against the ensemble cannot be established."""

    pass


class MemberDecodeError(ServersetError):
    """Raised when a member payload cannot be decoded."""

    pass


class DigestError(ServersetError):
    """Raised when a digest file cannot be read, parsed, or saved."""

    pass


class UninitializedSetError(ServersetError):
    """Raised when the serverset path does not exist."""

    pass


class EmptySetError(ServersetError):
    """Raised when the serverset exists but has no members."""

    pass


class MissingPortError(ServersetError):
    """Raised when a member does not advertise the requested named port."""

    pass


class SelectionExhaustedError(ServersetError):
    """Raised when selection keeps racing with membership churn."""

    pass


class PublishError(ServersetError):
    """Raised when raw content cannot be read from or written to a path."""

    pass
