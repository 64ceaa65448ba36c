import pytest

from hashcards.application.collection import (
    Collection,
    fingerprint,
    parse_cards,
    render_card,
    resolve_directory,
)
from hashcards.domain.errors import CollectionError
from hashcards.domain.models import CardKind


def test_parse_basic_card():
    cards = parse_cards("Q: What is 2 + 2?\nA: 4\n", source="math.md", deck="math")
    assert len(cards) == 1
    card = cards[0]
    assert card.kind is CardKind.BASIC
    assert card.question == "What is 2 + 2?"
    assert card.answer == "4"
    assert card.note_fingerprint == card.fingerprint
    assert card.fingerprint == fingerprint("basic", "What is 2 + 2?", "4")
    assert card.line == 1


def test_fields_continue_over_lines():
    body = "intro text is ignored\n\nQ: first line\nsecond line\nA: answer\n\nmore answer\n"
    (card,) = parse_cards(body, source="a.md", deck="a")
    assert card.question == "first line\nsecond line"
    assert card.answer == "answer\n\nmore answer"
    assert card.line == 3


def test_cloze_note_generates_sibling_cards():
    cards = parse_cards("C: The [mitochondria] is the [powerhouse] of the cell.", "bio.md", "bio")
    assert [c.answer for c in cards] == ["mitochondria", "powerhouse"]
    assert all(c.kind is CardKind.CLOZE for c in cards)
    assert cards[0].question == "The mitochondria is the powerhouse of the cell."
    assert cards[0].note_fingerprint == cards[1].note_fingerprint
    assert cards[0].fingerprint != cards[1].fingerprint
    assert cards[0].question[cards[0].cloze_start : cards[0].cloze_end] == "mitochondria"


def test_cloze_leaves_links_and_images_alone():
    cards = parse_cards("C: See [docs](http://x) and ![img](a.png) for [details].", "a.md", "a")
    assert [c.answer for c in cards] == ["details"]


@pytest.mark.parametrize(
    "body, message",
    [
        ("A: orphan answer", "answer without a question"),
        ("Q: no answer\n", "question without an answer"),
        ("Q:\nA: answer", "empty question"),
        ("Q: question\nA:   ", "empty answer"),
        ("C: nothing to delete", "without deletions"),
    ],
)
def test_parse_errors(body, message):
    with pytest.raises(CollectionError, match=message):
        parse_cards(body, source="bad.md", deck="bad")


def test_deck_defaults_to_relative_path(collection_dir, write_cards):
    write_cards("math/algebra.md", "Q: x + x\nA: 2x\n")
    collection = Collection.load(collection_dir)
    assert [c.deck for c in collection] == ["math/algebra"]
    assert collection.cards[0].source == "math/algebra.md"


def test_frontmatter_overrides_deck(collection_dir, write_cards):
    write_cards("notes.md", "---\ndeck: Geography/Capitals\n---\nQ: Capital of France?\nA: Paris\n")
    (card,) = Collection.load(collection_dir)
    assert card.deck == "Geography/Capitals"
    assert card.line == 4


def test_invalid_frontmatter_names_file(collection_dir, write_cards):
    write_cards("broken.md", "---\ndeck: a\ndeck: b\n---\nQ: q\nA: a\n")
    with pytest.raises(CollectionError, match="broken.md"):
        Collection.load(collection_dir)


def test_hidden_files_and_other_suffixes_are_skipped(collection_dir, write_cards):
    write_cards(".hidden/secret.md", "Q: hidden\nA: yes\n")
    write_cards("notes.txt", "Q: text\nA: file\n")
    write_cards("visible.md", "Q: shown\nA: yes\n")
    assert [c.question for c in Collection.load(collection_dir)] == ["shown"]


def test_fingerprint_survives_rename(collection_dir, write_cards):
    path = write_cards("one.md", "Q: stable?\nA: yes\n")
    before = Collection.load(collection_dir).fingerprints
    path.rename(collection_dir / "two.md")
    assert Collection.load(collection_dir).fingerprints == before


def test_duplicates_keep_first_occurrence(collection_dir, write_cards):
    write_cards("a.md", "Q: same\nA: card\n")
    write_cards("b.md", "Q: same\nA: card\n")
    collection = Collection.load(collection_dir)
    assert len(collection) == 1
    assert collection.cards[0].source == "a.md"
    (first, dup) = collection.duplicates[0]
    assert first.source == "a.md" and dup.source == "b.md"


def test_resolve_directory_errors(tmp_path):
    with pytest.raises(CollectionError, match="does not exist"):
        resolve_directory(tmp_path / "missing")
    file = tmp_path / "file.md"
    file.write_text("")
    with pytest.raises(CollectionError, match="not a directory"):
        resolve_directory(file)


def test_render_basic_card_escapes_html():
    (card,) = parse_cards("Q: Is <b> a tag?\nA: **yes**", source="a.md", deck="a")
    front, back = render_card(card)
    assert front == "<p>Is &lt;b&gt; a tag?</p>"
    assert back == "<p><strong>yes</strong></p>"


def test_render_cloze_card():
    card = parse_cards("C: Water boils at [100] degrees.", source="a.md", deck="a")[0]
    front, back = render_card(card)
    assert '<span class="cloze">[...]</span>' in front
    assert "100" not in front
    assert '<span class="cloze-reveal">100</span>' in back
    assert front.startswith("<p>Water boils at <span")


def test_render_fenced_code_block():
    body = "Q: Print the first two numbers\nA: Like this:\n```python\nfor i in range(3):\n    print(i < 2)\n```"
    (card,) = parse_cards(body, source="a.md", deck="a")
    _, back = render_card(card)
    assert back == (
        "<p>Like this:</p>"
        '<pre><code class="language-python">for i in range(3):\n'
        "    print(i &lt; 2)</code></pre>"
    )


def test_render_math_spans():
    (card,) = parse_cards("Q: What is $e^{i\\pi}$?\nA: $$-1$$", source="a.md", deck="a")
    front, back = render_card(card)
    assert front == '<p>What is <span class="math-inline">e^{i\\pi}</span>?</p>'
    assert back == '<p><span class="math-display">-1</span></p>'
