from ppe_relay.stores.sqlite import SQLiteEventStore

__all__ = ["SQLiteEventStore"]
