"""Serverset commands: select, watch, read (reconcile), get and set."""


def child_path(path: str, name: str) -> str:
    """Join a serverset path and a child name."""
    return f"{path.rstrip('/')}/{name}"
