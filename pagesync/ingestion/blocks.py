"""Flatten Notion blocks into markdown source.

This is deliberately shallow: it keeps the text and structure the renderer
needs (headings, lists, quotes, code, dividers) and leaves HTML rendering,
media and tables to the site.
"""

from __future__ import annotations

from typing import Callable, Dict, List


def rich_text_to_markdown(rich_text: List[dict]) -> str:
    parts: List[str] = []
    for item in rich_text or []:
        text = item.get("plain_text", "")
        if not text:
            continue
        annotations = item.get("annotations") or {}
        if annotations.get("code"):
            text = f"`{text}`"
        if annotations.get("bold"):
            text = f"**{text}**"
        if annotations.get("italic"):
            text = f"*{text}*"
        if annotations.get("strikethrough"):
            text = f"~~{text}~~"
        href = item.get("href")
        if href:
            text = f"[{text}]({href})"
        parts.append(text)
    return "".join(parts)


def _text(block: dict) -> str:
    return rich_text_to_markdown(block.get(block["type"], {}).get("rich_text", []))


def _code(block: dict) -> str:
    data = block.get("code", {})
    language = data.get("language", "")
    if language == "plain text":
        language = ""
    return f"```{language}\n{rich_text_to_markdown(data.get('rich_text', []))}\n```"


def _todo(block: dict) -> str:
    checked = block.get("to_do", {}).get("checked", False)
    return f"- [{'x' if checked else ' '}] {_text(block)}"


def _media(block: dict) -> str:
    data = block.get(block["type"], {})
    url = (data.get("external") or data.get("file") or {}).get("url", "")
    caption = rich_text_to_markdown(data.get("caption", []))
    if block["type"] == "image":
        return f"![{caption}]({url})"
    return f"[{caption or url}]({url})"


_CONVERTERS: Dict[str, Callable[[dict], str]] = {
    "paragraph": _text,
    "heading_1": lambda b: f"# {_text(b)}",
    "heading_2": lambda b: f"## {_text(b)}",
    "heading_3": lambda b: f"### {_text(b)}",
    "bulleted_list_item": lambda b: f"- {_text(b)}",
    "numbered_list_item": lambda b: f"1. {_text(b)}",
    "to_do": _todo,
    "toggle": _text,
    "quote": lambda b: f"> {_text(b)}",
    "callout": lambda b: f"> {_text(b)}",
    "code": _code,
    "divider": lambda b: "---",
    "equation": lambda b: f"$$\n{b.get('equation', {}).get('expression', '')}\n$$",
    "image": _media,
    "file": _media,
    "pdf": _media,
    "video": _media,
    "bookmark": lambda b: f"<{b.get('bookmark', {}).get('url', '')}>",
}


def blocks_to_markdown(blocks: List[dict], depth: int = 0) -> str:
    """Convert a block tree (children under the "children" key) to markdown."""
    lines: List[str] = []
    indent = "    " * depth
    for block in blocks:
        converter = _CONVERTERS.get(block.get("type", ""))
        if converter is not None:
            text = converter(block)
            lines.append("\n".join(f"{indent}{line}" if line else line for line in text.split("\n")))
        children = block.get("children") or []
        if children:
            lines.append(blocks_to_markdown(children, depth + 1))
    separator = "\n" if depth else "\n\n"
    return separator.join(line for line in lines if line)
