"""
Serverset: observe and mutate ZooKeeper serversets from the command line

A serverset is a parent znode whose ephemeral children each describe one
live process instance as a JSON endpoint record. This package provides:
- Random selection of a live member endpoint
- Blocking until a set's membership changes
- Mirroring a set into an on-disk digest that only changes with membership
- Publishing raw content to a path
"""

__version__ = "0.1.0"
