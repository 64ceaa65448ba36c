"""hashcards: plain-text spaced repetition driven from a local web page."""

from hashcards.consts import VERSION

__version__ = VERSION

__all__ = ["VERSION", "__version__"]
