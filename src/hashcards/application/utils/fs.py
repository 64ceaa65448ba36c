from collections.abc import Iterator
from pathlib import Path

from hashcards.domain.constants import CARD_FILE_SUFFIX


def iter_markdown_files(root: Path) -> Iterator[Path]:
    """
    Yield every card source under `root` in sorted order.

    Hidden files and directories (leading dot) are skipped.
    """
    for entry in sorted(root.iterdir()):
        if entry.name.startswith("."):
            continue
        if entry.is_dir():
            yield from iter_markdown_files(entry)
        elif entry.is_file() and entry.suffix == CARD_FILE_SUFFIX:
            yield entry
