"""Bounded multi-producer, multi-consumer broadcast queues for threads."""

__version__ = "0.2.0"

__all__ = ["atomicsignal", "broadcast", "countedindex", "demo"]