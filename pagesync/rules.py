"""Ready-made policy rules driven by Notion properties.

Each helper returns a function of a Document, suitable for the rule slots of
`pagesync.policy.Policy`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from pagesync.ingestion.base import BaseSource
from pagesync.ingestion.document import Document, PropertyKind


def checkbox(name: str) -> Callable[[Document], bool]:
    """Public when the checkbox property is ticked."""

    def rule(doc: Document) -> bool:
        return bool(BaseSource.extract_property(doc, name, PropertyKind.CHECKBOX).value)

    return rule


def select_equals(name: str, expected: str) -> Callable[[Document], bool]:
    """Public when a select (or status) property has the given option."""

    def rule(doc: Document) -> bool:
        return BaseSource.extract_property(doc, name, PropertyKind.SELECT).value == expected

    return rule


def has_tag(name: str, tag: str) -> Callable[[Document], bool]:
    def rule(doc: Document) -> bool:
        return tag in BaseSource.extract_property(doc, name, PropertyKind.MULTI_SELECT).value

    return rule


def date_property(name: str) -> Callable[[Document], Optional[datetime]]:
    """Publish date read from a date property; None when empty."""

    def rule(doc: Document) -> Optional[datetime]:
        return BaseSource.extract_property(doc, name, PropertyKind.DATE).value

    return rule


def rich_text(name: str) -> Callable[[Document], Optional[str]]:
    """Slug override read from a text property; None when blank."""

    def rule(doc: Document) -> Optional[str]:
        text = BaseSource.extract_property(doc, name, PropertyKind.RICH_TEXT).value.strip()
        return text or None

    return rule
