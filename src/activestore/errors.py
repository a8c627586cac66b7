"""
ActiveStore Errors

Exception hierarchy shared by the record engine, the connection registry
and the storage backends.

Configuration errors are raised straight to the caller. Storage errors are
published on the event bus by the record engine and then re-raised.
"""


class ActiveStoreError(Exception):
    """Base exception for all activestore errors"""
    pass


class ConfigurationError(ActiveStoreError):
    """Raised when a record or connection is used in a way its setup does not allow"""
    pass


class RelationshipNotFoundError(ConfigurationError, KeyError):
    """Raised when preloading a relationship the record type does not declare"""

    def __init__(self, relationship: str):
        self.relationship = relationship
        super().__init__(f"No relationship setup for this model with the key: {relationship}")

    def __str__(self) -> str:
        # KeyError would repr() the message
        return self.args[0]


class MissingKeyError(ConfigurationError):
    """Raised when an operation needs a record key and none is hydrated"""

    def __init__(self, message: str = "Model has no key to store. Make sure your key is hydrated"):
        super().__init__(message)


class NoConnectionError(ConfigurationError):
    """Raised when no connection was injected and no default connection is set"""

    def __init__(self, message: str = "No database connection available. Call init_db() or inject one"):
        super().__init__(message)


class RecordTypeNotFoundError(ConfigurationError):
    """Raised when a relationship names a record type that was never defined"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"No record type registered under the name: {name}")


class StorageError(ActiveStoreError):
    """Raised by backends when a storage request fails"""
    pass


class StoreNotFoundError(StorageError):
    """Raised when a store is not declared in the connection configuration"""

    def __init__(self, store: str):
        self.store = store
        super().__init__(f"Invalid store: {store}")


class ConstraintError(StorageError):
    """Raised when a write would break a unique index"""

    def __init__(self, store: str, index: str, value: str):
        self.store = store
        self.index = index
        self.value = value
        super().__init__(f"Unique index {store}.{index} already holds the value {value!r}")


class RequestTimeoutError(StorageError, TimeoutError):
    """Raised when a backend request does not complete before its deadline"""

    def __init__(self, message: str = "Database request timed out"):
        super().__init__(message)
