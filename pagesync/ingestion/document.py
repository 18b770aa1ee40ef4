"""Typed view of Notion pages.

Notion returns properties as a heterogeneous bag keyed by display name. Each
property is parsed into one variant per kind so rules and the page builder
never poke at raw dicts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pagesync.core.dates import parse_datetime


class PropertyKind(str, Enum):
    TITLE = "title"
    RICH_TEXT = "rich_text"
    MULTI_SELECT = "multi_select"
    SELECT = "select"
    PEOPLE = "people"
    CHECKBOX = "checkbox"
    DATE = "date"
    UNIQUE_ID = "unique_id"
    UNSUPPORTED = "unsupported"


# Kinds located by type rather than by name: their display names differ per database
AUTO_DETECTED_KINDS = frozenset({PropertyKind.TITLE, PropertyKind.UNIQUE_ID})

# Value reported for a property that isn't there
EMPTY_VALUES: Dict[PropertyKind, Any] = {
    PropertyKind.TITLE: "",
    PropertyKind.RICH_TEXT: "",
    PropertyKind.MULTI_SELECT: [],
    PropertyKind.SELECT: None,
    PropertyKind.PEOPLE: [],
    PropertyKind.CHECKBOX: False,
    PropertyKind.DATE: None,
    PropertyKind.UNIQUE_ID: None,
    PropertyKind.UNSUPPORTED: None,
}


def _plain_text(items: Optional[List[dict]]) -> str:
    return "".join(item.get("plain_text", "") for item in items or [])


@dataclass(frozen=True)
class Property:
    """Base class of all property variants."""

    kind = PropertyKind.UNSUPPORTED

    @property
    def present(self) -> bool:
        return True

    @property
    def value(self) -> Any:
        return None

    def as_strings(self) -> List[str]:
        """Flatten to strings for list-valued page fields (tags, authors)."""
        return []


@dataclass(frozen=True)
class TitleProperty(Property):
    text: str = ""
    kind = PropertyKind.TITLE

    @property
    def value(self) -> str:
        return self.text


@dataclass(frozen=True)
class RichTextProperty(Property):
    text: str = ""
    kind = PropertyKind.RICH_TEXT

    @property
    def value(self) -> str:
        return self.text

    def as_strings(self) -> List[str]:
        return [self.text] if self.text else []


@dataclass(frozen=True)
class MultiSelectProperty(Property):
    options: List[str] = field(default_factory=list)
    kind = PropertyKind.MULTI_SELECT

    @property
    def value(self) -> List[str]:
        return list(self.options)

    def as_strings(self) -> List[str]:
        return list(self.options)


@dataclass(frozen=True)
class SelectProperty(Property):
    option: Optional[str] = None
    kind = PropertyKind.SELECT

    @property
    def value(self) -> Optional[str]:
        return self.option

    def as_strings(self) -> List[str]:
        return [self.option] if self.option else []


@dataclass(frozen=True)
class PeopleProperty(Property):
    """People are reported by display name, falling back to user id."""

    people: List[str] = field(default_factory=list)
    kind = PropertyKind.PEOPLE

    @property
    def value(self) -> List[str]:
        return list(self.people)

    def as_strings(self) -> List[str]:
        return list(self.people)


@dataclass(frozen=True)
class CheckboxProperty(Property):
    checked: bool = False
    kind = PropertyKind.CHECKBOX

    @property
    def value(self) -> bool:
        return self.checked


@dataclass(frozen=True)
class DateProperty(Property):
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    kind = PropertyKind.DATE

    @property
    def value(self) -> Optional[datetime]:
        return self.start


@dataclass(frozen=True)
class UniqueIdProperty(Property):
    prefix: Optional[str] = None
    number: Optional[int] = None
    kind = PropertyKind.UNIQUE_ID

    @property
    def value(self) -> Optional[str]:
        if self.number is None:
            return None
        return f"{self.prefix}-{self.number}" if self.prefix else str(self.number)


@dataclass(frozen=True)
class UnsupportedProperty(Property):
    type_name: str = ""


@dataclass(frozen=True)
class MissingProperty(Property):
    """Typed absent result: the property doesn't exist or has another kind."""

    expected: PropertyKind = PropertyKind.UNSUPPORTED

    @property
    def present(self) -> bool:
        return False

    @property
    def value(self) -> Any:
        empty = EMPTY_VALUES[self.expected]
        return list(empty) if isinstance(empty, list) else empty


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _parse_person(person: dict) -> str:
    return person.get("name") or person.get("id", "")


def _parse_date(raw: Optional[dict]) -> DateProperty:
    raw = raw or {}
    return DateProperty(start=parse_datetime(raw.get("start")), end=parse_datetime(raw.get("end")))


def _parse_unique_id(raw: Optional[dict]) -> UniqueIdProperty:
    raw = raw or {}
    return UniqueIdProperty(prefix=raw.get("prefix"), number=raw.get("number"))


_PARSERS: Dict[str, Callable[[Any], Property]] = {
    "title": lambda raw: TitleProperty(text=_plain_text(raw)),
    "rich_text": lambda raw: RichTextProperty(text=_plain_text(raw)),
    "multi_select": lambda raw: MultiSelectProperty(options=[opt["name"] for opt in raw or []]),
    "select": lambda raw: SelectProperty(option=(raw or {}).get("name")),
    # Notion's status property has the same shape as select
    "status": lambda raw: SelectProperty(option=(raw or {}).get("name")),
    "people": lambda raw: PeopleProperty(people=[_parse_person(p) for p in raw or []]),
    "checkbox": lambda raw: CheckboxProperty(checked=bool(raw)),
    "date": _parse_date,
    "unique_id": _parse_unique_id,
}


def parse_property(raw: dict) -> Property:
    """Turn one raw Notion property object into its typed variant."""
    type_name = raw.get("type", "")
    parser = _PARSERS.get(type_name)
    if parser is None:
        return UnsupportedProperty(type_name=type_name)
    return parser(raw.get(type_name))


@dataclass
class Document:
    """A Notion database page as seen by the sync engine."""

    id: str
    last_edited_at: datetime
    properties: Dict[str, Property] = field(default_factory=dict)
    data_source_id: Optional[str] = None
    created_at: Optional[datetime] = None
    url: Optional[str] = None

    @classmethod
    def from_api_response(cls, page: dict) -> "Document":
        """Create a Document from a Notion page object."""
        last_edited_at = parse_datetime(page.get("last_edited_time"))
        if last_edited_at is None:
            raise ValueError(f"Page {page.get('id')} has no usable last_edited_time")

        parent = page.get("parent") or {}
        data_source_id = parent.get("data_source_id") or parent.get("database_id")

        return cls(
            id=page["id"],
            last_edited_at=last_edited_at,
            properties={name: parse_property(raw) for name, raw in (page.get("properties") or {}).items()},
            data_source_id=data_source_id,
            created_at=parse_datetime(page.get("created_time")),
            url=page.get("url"),
        )

    @property
    def short_id(self) -> str:
        """Last 8 characters of the id without dashes."""
        return self.id.replace("-", "")[-8:]
