"""
Exception hierarchy for hashcards.

Setup errors (collection, store, config) are fatal to the invocation.
Client errors carry the HTTP status the drill server answers with.
"""


class HashcardsError(Exception):
    """Base class for every error hashcards raises on purpose."""


class CollectionError(HashcardsError):
    """The collection directory is missing, unreadable, or malformed."""


class StoreError(HashcardsError):
    """The review store failed: I/O, serialization, or schema mismatch."""


class ConfigError(HashcardsError):
    """The config file exists but cannot be parsed or validated."""


class SessionEmpty(HashcardsError):
    """The session builder produced no cards."""


class ServerUnreachable(HashcardsError):
    """The drill server did not start accepting connections in time."""


class ClientError(HashcardsError):
    """A request the drill server rejects with a 4xx status."""

    status_code = 400


class MalformedRequestError(ClientError):
    status_code = 400


class UnknownGradeError(ClientError):
    status_code = 400

    def __init__(self, label: str):
        super().__init__(f"unknown grade: {label!r}")
        self.label = label


class StaleCardError(ClientError):
    """The client answered a card that is not at the head of the queue."""

    status_code = 409

    def __init__(self, fingerprint: str):
        super().__init__(f"card {fingerprint} is not the current card")
        self.fingerprint = fingerprint


class NothingToUndoError(ClientError):
    status_code = 409

    def __init__(self):
        super().__init__("nothing to undo")
