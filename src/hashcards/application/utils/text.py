import html
import re
from typing import Any

import yaml  # type: ignore
import yaml.constructor

# ---------- Math: wrap TeX for client-side rendering ----------

_BLOCK_MATH = re.compile(r"(?<!\\)\$\$(.+?)(?<!\\)\$\$", re.DOTALL)
_INLINE_MATH = re.compile(r"(?<!\\)\$(?!\$)(.+?)(?<!\\)\$", re.DOTALL)
_CODE_SPAN = re.compile(r"`([^`]+)`")
_BOLD = re.compile(r"\*\*(.+?)\*\*")
_ITALIC = re.compile(r"(?<!\*)\*(?!\*)(.+?)(?<!\*)\*(?!\*)")
_FENCE = re.compile(r"^```([\w+-]*)[ \t]*\n(.*?)\n```[ \t]*$", re.DOTALL | re.MULTILINE)
_BLOCK_SLOT = re.compile(r"\x00(\d+)\x00")


def render_text(text: str) -> str:
    """Render card text as HTML.

    Text is escaped first. `$$...$$` and `$...$` become math spans the client
    typesets with KaTeX when it is available; code spans, bold and italics get
    their usual tags; blank lines separate paragraphs. Fenced blocks become
    `<pre><code>` with a `language-*` class for highlight.js.
    """
    out = html.escape(text.strip(), quote=False)

    blocks: list[str] = []

    def stash(m: re.Match) -> str:
        lang = f' class="language-{m.group(1)}"' if m.group(1) else ""
        blocks.append(f"<pre><code{lang}>{m.group(2)}</code></pre>")
        return f"\n\n\x00{len(blocks) - 1}\x00\n\n"

    out = _FENCE.sub(stash, out)
    out = _BLOCK_MATH.sub(lambda m: f'<span class="math-display">{m.group(1)}</span>', out)
    out = _INLINE_MATH.sub(lambda m: f'<span class="math-inline">{m.group(1)}</span>', out)
    out = _CODE_SPAN.sub(r"<code>\1</code>", out)
    out = _BOLD.sub(r"<strong>\1</strong>", out)
    out = _ITALIC.sub(r"<em>\1</em>", out)

    paragraphs = [p.strip() for p in re.split(r"\n\s*\n", out) if p.strip()]
    parts = []
    for p in paragraphs:
        slot = _BLOCK_SLOT.fullmatch(p)
        if slot:
            parts.append(blocks[int(slot.group(1))])
        else:
            parts.append(f"<p>{p.replace(chr(10), '<br>')}</p>")
    return "".join(parts)


def render_inline(text: str) -> str:
    """Like render_text, for fragments embedded in a surrounding paragraph.

    Surrounding whitespace is kept as a single space so fragments can be
    concatenated.
    """
    core = text.strip()
    if not core:
        return " " if text else ""
    lead = " " if text[0].isspace() else ""
    trail = " " if text[-1].isspace() else ""
    rendered = render_text(core)
    if rendered.startswith("<p>") and rendered.endswith("</p>") and rendered.count("<p>") == 1:
        rendered = rendered[3:-4]
    return f"{lead}{rendered}{trail}"


def normalize(text: str) -> str:
    """Canonical form of card text used for fingerprinting."""
    return "\n".join(line.rstrip() for line in text.strip().splitlines())


# ---------- Frontmatter helpers ----------


def parse_frontmatter(md_text: str) -> tuple[dict[str, Any], str, int]:
    """Parse YAML frontmatter from markdown text.
    Uses line-by-line parsing instead of regex for reliability.
    Returns (meta, body, body_offset) where body_offset is the number of lines
    consumed by the frontmatter block.
    Raises yaml.YAMLError on invalid frontmatter.
    """
    # Handle potential BOM (Byte Order Mark)
    md_text = md_text.lstrip("\ufeff")

    lines = md_text.split("\n")

    # Check for opening ---
    if not lines or lines[0].strip() != "---":
        return {}, md_text, 0

    # Find closing ---
    yaml_end_line = None
    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == "---":
            yaml_end_line = i
            break

    if yaml_end_line is None:
        raise yaml.YAMLError(
            "Unclosed YAML frontmatter. Found starting '---' but no closing '---'."
        )

    raw = "\n".join(lines[1:yaml_end_line])
    body = "\n".join(lines[yaml_end_line + 1 :])

    # Fix tabs (common user error)
    if "\t" in raw:
        raw = raw.replace("\t", "  ")

    meta = yaml.load(raw, Loader=UniqueKeyLoader) or {}
    if not isinstance(meta, dict):
        raise yaml.YAMLError("frontmatter must be a mapping")
    return meta, body, yaml_end_line + 1


class UniqueKeyLoader(yaml.SafeLoader):
    """Custom YAML loader that forbids duplicate keys."""

    def construct_mapping(self, node, deep=False):
        mapping = set()
        for key_node, _ in node.value:
            key = self.construct_object(key_node, deep=deep)
            if key in mapping:
                raise yaml.constructor.ConstructorError(
                    None, None, f"found duplicate key '{key}'", key_node.start_mark
                )
            mapping.add(key)
        return super().construct_mapping(node, deep)
