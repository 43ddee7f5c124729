"""Terminal rendering of conversation messages."""

import re
import click

from ..core.sanitizer import DisplayNode, NodeKind, parse_display
from ..state.conversation_store import Message


USER_LABEL = "You"
ASSISTANT_LABEL = "Rugved"

# C0 and C1 controls except tab and newline; ESC would start a terminal sequence
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f-\x9f]")


def strip_controls(text: str) -> str:
    return _CONTROL_CHARS.sub("", text)


def style_node(node: DisplayNode) -> str:
    if node.kind is NodeKind.LINE_BREAK:
        return "\n"
    text = strip_controls(node.text)
    if node.kind is NodeKind.BOLD:
        return click.style(text, bold=True)
    if node.kind is NodeKind.QUOTED_BOLD:
        return click.style(f'"{text}"', bold=True)
    if node.kind is NodeKind.ITALIC:
        return click.style(text, italic=True)
    if node.kind is NodeKind.CODE:
        return click.style(text, fg="cyan")
    return text


def format_body(message: Message) -> str:
    """Styled message text; user input is shown as typed."""
    if message.error:
        return click.style(message.text, fg="red")
    if message.is_user:
        return strip_controls(message.text)
    return "".join(style_node(node) for node in parse_display(message.text))


def format_message(message: Message, index: int = None) -> str:
    label = USER_LABEL if message.is_user else ASSISTANT_LABEL
    color = "green" if message.is_user else "blue"
    prefix = f"[{index}] " if index is not None else ""
    header = click.style(f"{prefix}{label}:", fg=color, bold=True)
    return f"{header} {format_body(message)}"
