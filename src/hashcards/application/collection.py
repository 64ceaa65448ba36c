"""
Collection loading: walk a directory of Markdown card sources and parse them
into fingerprinted cards.

Card syntax:

    Q: question text
    A: answer text

    C: Cloze text where each [bracketed span] becomes its own card.

Fields continue over following lines until the next `Q:`, `A:` or `C:`
marker. Optional YAML frontmatter may set `deck`; otherwise the deck is the
file's path relative to the collection root, without the suffix.
"""

import hashlib
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml  # type: ignore

from hashcards.application.utils.fs import iter_markdown_files
from hashcards.application.utils.text import (
    normalize,
    parse_frontmatter,
    render_inline,
    render_text,
)
from hashcards.domain.errors import CollectionError
from hashcards.domain.models import Card, CardKind

logger = logging.getLogger(__name__)

_CLOZE_DELETION = re.compile(r"(?<!!)\[([^\[\]\n]+)\](?!\()")


def fingerprint(*parts: str) -> str:
    return hashlib.sha256("\0".join(parts).encode("utf-8")).hexdigest()


def resolve_directory(directory: Path | str | None) -> Path:
    """Resolve the collection directory, defaulting to the working directory."""
    path = Path(directory) if directory is not None else Path.cwd()
    path = path.expanduser().resolve()
    if not path.exists():
        raise CollectionError(f"collection directory does not exist: {path}")
    if not path.is_dir():
        raise CollectionError(f"not a directory: {path}")
    return path


@dataclass
class Collection:
    """All cards of a collection, in source order, without duplicates."""

    root: Path
    cards: list[Card] = field(default_factory=list)
    duplicates: list[tuple[Card, Card]] = field(default_factory=list)

    def __post_init__(self):
        self._by_fingerprint = {card.fingerprint: card for card in self.cards}

    @classmethod
    def load(cls, root: Path) -> "Collection":
        cards: list[Card] = []
        duplicates: list[tuple[Card, Card]] = []
        seen: dict[str, Card] = {}

        try:
            paths = list(iter_markdown_files(root))
        except OSError as e:
            raise CollectionError(f"cannot read collection {root}: {e}") from e

        for path in paths:
            for card in parse_card_file(path, root):
                first = seen.get(card.fingerprint)
                if first is not None:
                    duplicates.append((first, card))
                    logger.debug(
                        f"[collection] Duplicate card {card.fingerprint[:12]} in "
                        f"{card.source}:{card.line} (first in {first.source}:{first.line})"
                    )
                    continue
                seen[card.fingerprint] = card
                cards.append(card)

        logger.info(f"Loaded {len(cards)} cards from {len(paths)} files in {root}")
        return cls(root=root, cards=cards, duplicates=duplicates)

    def __len__(self) -> int:
        return len(self.cards)

    def __iter__(self):
        return iter(self.cards)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._by_fingerprint

    def get(self, fingerprint: str) -> Card | None:
        return self._by_fingerprint.get(fingerprint)

    @property
    def fingerprints(self) -> set[str]:
        return set(self._by_fingerprint)


def parse_card_file(path: Path, root: Path) -> list[Card]:
    source = path.relative_to(root).as_posix()
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise CollectionError(f"cannot read {source}: {e}") from e

    try:
        meta, body, offset = parse_frontmatter(text)
    except yaml.YAMLError as e:
        raise CollectionError(f"{source}: invalid frontmatter: {e}") from e

    deck = meta.get("deck", source.removesuffix(path.suffix))
    if not isinstance(deck, str) or not deck.strip():
        raise CollectionError(f"{source}: 'deck' must be a non-empty string")

    return parse_cards(body, source=source, deck=deck.strip().strip("/"), line_offset=offset)


def parse_cards(body: str, source: str, deck: str, line_offset: int = 0) -> list[Card]:
    cards: list[Card] = []
    kind: str | None = None
    start_line = 0
    question: list[str] = []
    answer: list[str] = []

    def flush():
        if kind is None:
            return
        if kind == "Q":
            raise CollectionError(f"{source}:{start_line}: question without an answer")
        if kind == "A":
            cards.append(_basic_card("\n".join(question), "\n".join(answer), source, deck, start_line))
        else:
            cards.extend(_cloze_cards("\n".join(question), source, deck, start_line))

    for number, line in enumerate(body.split("\n"), start=line_offset + 1):
        if line.startswith("Q:"):
            flush()
            kind, start_line = "Q", number
            question, answer = [line[2:]], []
        elif line.startswith("A:"):
            if kind != "Q":
                raise CollectionError(f"{source}:{number}: answer without a question")
            kind = "A"
            answer = [line[2:]]
        elif line.startswith("C:"):
            flush()
            kind, start_line = "C", number
            question, answer = [line[2:]], []
        elif kind in ("Q", "C"):
            question.append(line)
        elif kind == "A":
            answer.append(line)
    flush()
    return cards


def _basic_card(question: str, answer: str, source: str, deck: str, line: int) -> Card:
    question, answer = normalize(question), normalize(answer)
    if not question:
        raise CollectionError(f"{source}:{line}: empty question")
    if not answer:
        raise CollectionError(f"{source}:{line}: empty answer")
    fp = fingerprint(CardKind.BASIC.value, question, answer)
    return Card(
        fingerprint=fp,
        note_fingerprint=fp,
        deck=deck,
        kind=CardKind.BASIC,
        question=question,
        answer=answer,
        source=source,
        line=line,
    )


def _cloze_cards(raw: str, source: str, deck: str, line: int) -> list[Card]:
    raw = normalize(raw)
    spans: list[tuple[int, int]] = []
    pieces: list[str] = []
    cursor = 0
    length = 0
    for m in _CLOZE_DELETION.finditer(raw):
        before = raw[cursor : m.start()]
        pieces.append(before)
        length += len(before)
        deleted = m.group(1)
        spans.append((length, length + len(deleted)))
        pieces.append(deleted)
        length += len(deleted)
        cursor = m.end()
    pieces.append(raw[cursor:])
    text = "".join(pieces)

    if not spans:
        raise CollectionError(f"{source}:{line}: cloze card without deletions")

    note = fingerprint(CardKind.CLOZE.value, text)
    return [
        Card(
            fingerprint=fingerprint(CardKind.CLOZE.value, text, str(start), str(end)),
            note_fingerprint=note,
            deck=deck,
            kind=CardKind.CLOZE,
            question=text,
            answer=text[start:end],
            source=source,
            line=line,
            cloze_start=start,
            cloze_end=end,
        )
        for start, end in spans
    ]


def render_card(card: Card) -> tuple[str, str]:
    """Return the (front, back) HTML of a card."""
    if card.kind is CardKind.BASIC:
        return render_text(card.question), render_text(card.answer)

    before = card.question[: card.cloze_start]
    after = card.question[card.cloze_end :]
    front = (
        f"<p>{render_inline(before)}<span class=\"cloze\">[...]</span>{render_inline(after)}</p>"
    )
    back = (
        f"<p>{render_inline(before)}<span class=\"cloze-reveal\">"
        f"{render_inline(card.answer)}</span>{render_inline(after)}</p>"
    )
    return front, back
