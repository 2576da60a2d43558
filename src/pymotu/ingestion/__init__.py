"""Ingestion layer.

Adapters that move data between the device datastore and the local
state: the long-poll reader and the write path.
"""

__all__: list[str] = []
