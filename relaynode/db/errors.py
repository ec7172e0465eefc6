# relaynode/db/errors.py


class StoreError(Exception):
    """Base class for document store failures."""


class DocumentNotFound(StoreError):
    pass


class RevisionConflict(StoreError):
    """The supplied revision is stale or missing for an existing document."""


class PersistenceError(StoreError):
    """The store is unreachable or failed internally."""


class StoreTimeout(PersistenceError):
    pass


class StartupFailure(StoreError):
    """The store could not be reached or prepared when the process started."""


class MalformedDocument(StoreError):
    """A stored document no longer matches the message shape."""
