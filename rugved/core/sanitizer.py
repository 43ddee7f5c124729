"""
Text sanitizer for model replies.

Two views of the same reply are produced: a speech-safe string with every
markup token removed, and a display tree built from a small set of emphasis
rules. The display tree is rendered with every input character escaped, so
only the tags emitted here can ever appear in the output.
"""

import re
import html
from enum import Enum
from dataclasses import dataclass
from typing import List


_TAG = re.compile(r"</?[A-Za-z][^<>]*>")
_CODE_FENCE = re.compile(r"```[\w+-]*")
_EMPHASIS = re.compile(r"[*`~]+")
_EDGE_UNDERSCORE = re.compile(r"(?<!\w)_+|_+(?!\w)")
_HEADING = re.compile(r"^[ \t]*#+[ \t]+", re.MULTILINE)
_WHITESPACE = re.compile(r"\s+")

_DISPLAY_TOKEN = re.compile(
    r'"\*\*(?P<quoted_bold>[^*\n]+?)\*\*"'
    r"|`(?P<code>[^`\n]+)`"
    r"|\*\*(?P<bold>[^*\n]+?)\*\*"
    r"|\*(?P<italic>[^*\s](?:[^*\n]*?[^*\s])?)\*"
    r"|(?P<line_break>\r?\n)"
)


class NodeKind(str, Enum):
    TEXT = "text"
    BOLD = "bold"
    ITALIC = "italic"
    CODE = "code"
    QUOTED_BOLD = "quoted_bold"
    LINE_BREAK = "line_break"


@dataclass(frozen=True)
class DisplayNode:
    """One piece of formatted display text."""

    kind: NodeKind
    text: str = ""


@dataclass(frozen=True)
class SanitizedText:
    """Speech and display forms of one reply."""

    speech: str
    display: List[DisplayNode]

    @property
    def markup(self) -> str:
        return render_markup(self.display)


_MARKUP_TEMPLATES = {
    NodeKind.TEXT: "{}",
    NodeKind.BOLD: "<strong>{}</strong>",
    NodeKind.ITALIC: "<em>{}</em>",
    NodeKind.CODE: "<code>{}</code>",
    NodeKind.QUOTED_BOLD: "<strong>&quot;{}&quot;</strong>",
    NodeKind.LINE_BREAK: "<br>",
}


def _strip_once(text: str) -> str:
    text = _TAG.sub(" ", text)
    text = _CODE_FENCE.sub(" ", text)
    text = _EMPHASIS.sub("", text)
    text = _EDGE_UNDERSCORE.sub("", text)
    text = _HEADING.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def speech_safe(text: str) -> str:
    """
    Reduce a reply to plain text suitable for narration.

    Markup tags, code fences, emphasis markers and heading markers are removed
    and whitespace runs collapse to single spaces. Stripping repeats until the
    text stops changing, so speech_safe(speech_safe(x)) == speech_safe(x).
    """
    if not text:
        return ""

    current = _strip_once(text)
    while True:
        stripped = _strip_once(current)
        if stripped == current:
            return current
        current = stripped


def parse_display(text: str) -> List[DisplayNode]:
    """Split a reply into display nodes using the supported emphasis rules."""
    nodes: List[DisplayNode] = []
    if not text:
        return nodes

    position = 0
    for match in _DISPLAY_TOKEN.finditer(text):
        if match.start() > position:
            nodes.append(DisplayNode(NodeKind.TEXT, text[position:match.start()]))

        kind = NodeKind(match.lastgroup)
        if kind is NodeKind.LINE_BREAK:
            nodes.append(DisplayNode(NodeKind.LINE_BREAK))
        else:
            nodes.append(DisplayNode(kind, match.group(match.lastgroup)))
        position = match.end()

    if position < len(text):
        nodes.append(DisplayNode(NodeKind.TEXT, text[position:]))
    return nodes


def render_markup(nodes: List[DisplayNode]) -> str:
    """Render display nodes to markup, escaping all node text."""
    return "".join(
        _MARKUP_TEMPLATES[node.kind].format(html.escape(node.text, quote=True))
        for node in nodes
    )


def display_markup(text: str) -> str:
    return render_markup(parse_display(text))


def sanitize(text: str) -> SanitizedText:
    """Produce both the speech-safe and display forms of a reply."""
    return SanitizedText(speech=speech_safe(text), display=parse_display(text))
