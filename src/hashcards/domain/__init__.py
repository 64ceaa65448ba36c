# Domain Package
from .errors import (
    ClientError,
    CollectionError,
    ConfigError,
    HashcardsError,
    SessionEmpty,
    StoreError,
)
from .models import AnswerControls, Card, CardKind, CardState, Grade, ReviewRecord
from .ports import ReviewStore

__all__ = [
    "AnswerControls",
    "Card",
    "CardKind",
    "CardState",
    "ClientError",
    "CollectionError",
    "ConfigError",
    "Grade",
    "HashcardsError",
    "ReviewRecord",
    "ReviewStore",
    "SessionEmpty",
    "StoreError",
]
