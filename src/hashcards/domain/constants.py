"""Centralized constants for hashcards.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Collection ----------
CONFIG_FILENAME = "hashcards.toml"
DB_FILENAME = "hashcards.db"
CARD_FILE_SUFFIX = ".md"

# ---------- Review store ----------
SCHEMA_VERSION = 1
STORE_TIMEOUT = 5.0  # seconds

# ---------- Drill server ----------
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000
DEFAULT_OPEN_BROWSER = True
DEFAULT_BURY_SIBLINGS = True
DEFAULT_SHUFFLE = True

# ---------- Browser launch polling ----------
BROWSER_POLL_ATTEMPTS = 40
BROWSER_POLL_INTERVAL = 0.25  # seconds
BROWSER_POLL_TIMEOUT = 1.0  # seconds
