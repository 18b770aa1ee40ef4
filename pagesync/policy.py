"""Per-data-source publishing policy.

A policy bundles the pure rules the page builder applies to one Notion
database. Policies are plain Python, declared in the module named by
SYNC_POLICY_MODULE:

    # sync_policies.py
    from pagesync.policy import Policy
    from pagesync import rules

    POLICIES = [
        Policy(
            data_source_id="0f3c...",
            alias="blog",
            is_public=rules.checkbox("Published"),
            publish_date=rules.date_property("Publish Date"),
            slug_override=rules.rich_text("Slug"),
            slug_sync_property="Slug",
            tags_property="Tags",
        ),
    ]
"""

from __future__ import annotations

import importlib
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from pagesync.core.config import settings
from pagesync.core.errors import ConfigError, UnknownDataSourceError
from pagesync.core.logging import get_logger
from pagesync.ingestion.document import Document

log = get_logger("policy")


def always_public(doc: Document) -> bool:
    return True


def last_edited(doc: Document) -> Optional[datetime]:
    return doc.last_edited_at


def no_override(doc: Document) -> Optional[str]:
    return None


@dataclass
class Policy:
    data_source_id: str
    alias: Optional[str] = None
    is_public: Callable[[Document], bool] = always_public
    publish_date: Callable[[Document], Any] = last_edited
    slug_override: Callable[[Document], Optional[str]] = no_override
    slug_sync_property: Optional[str] = None
    tags_property: Optional[str] = None
    authors_property: Optional[str] = None
    metadata_extractor: Optional[Callable[[Document], Dict[str, Any]]] = None
    # Env var name, literal token, or None for settings.NOTION_TOKEN
    notion_token: Optional[str] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.alias:
            self.alias = self.data_source_id

    def validate(self) -> "Policy":
        """Raise ConfigError if the policy can't drive a sync."""
        if not isinstance(self.data_source_id, str) or not self.data_source_id.strip():
            raise ConfigError("Policy is missing data_source_id")

        for rule_name in ("is_public", "publish_date", "slug_override"):
            if not callable(getattr(self, rule_name)):
                raise ConfigError(
                    f"Policy '{self.alias}': {rule_name} must be callable",
                    data_source_id=self.data_source_id,
                )
        if self.metadata_extractor is not None and not callable(self.metadata_extractor):
            raise ConfigError(
                f"Policy '{self.alias}': metadata_extractor must be callable",
                data_source_id=self.data_source_id,
            )

        for prop_name in ("slug_sync_property", "tags_property", "authors_property"):
            value = getattr(self, prop_name)
            if value is not None and (not isinstance(value, str) or not value.strip()):
                raise ConfigError(
                    f"Policy '{self.alias}': {prop_name} must be a non-empty property name",
                    data_source_id=self.data_source_id,
                )
        return self

    def matches(self, key: str) -> bool:
        if key == self.alias:
            return True
        # Notion ids appear both with and without dashes
        return _normalize_id(key) == _normalize_id(self.data_source_id)


def _normalize_id(value: str) -> str:
    return value.replace("-", "").lower()


def resolve_token(policy: Policy) -> str:
    """Resolve the Notion token for a policy.

    notion_token may name an environment variable or be the token itself;
    when unset the global NOTION_TOKEN setting is used.
    """
    value = (policy.notion_token or "").strip()
    if value:
        return os.environ.get(value) or value

    if not settings.NOTION_TOKEN:
        raise ConfigError(
            f"Missing Notion token for data source '{policy.alias}'. "
            "Set NOTION_TOKEN or notion_token on the policy.",
            data_source_id=policy.data_source_id,
        )
    return settings.NOTION_TOKEN


class PolicyRegistry:
    """Validated set of policies, addressable by data source id or alias."""

    def __init__(self, policies: Iterable[Policy]):
        self._policies: List[Policy] = []
        seen: Set[str] = set()
        for policy in policies:
            if not isinstance(policy, Policy):
                raise ConfigError(f"Expected Policy, got {type(policy).__name__}")
            policy.validate()
            keys = {policy.data_source_id, policy.alias}
            clash = keys & seen
            if clash:
                raise ConfigError(f"Duplicate data source id or alias '{sorted(clash)[0]}'")
            seen |= keys
            self._policies.append(policy)

    def __iter__(self):
        return iter(self._policies)

    def __len__(self) -> int:
        return len(self._policies)

    def get(self, key: str) -> Optional[Policy]:
        return next((p for p in self._policies if p.matches(key)), None)

    def select(self, key: Optional[str] = None) -> List[Policy]:
        """All policies, or the one matching key (ConfigError if none does)."""
        if not key:
            if not self._policies:
                raise ConfigError("No data sources configured")
            return list(self._policies)
        policy = self.get(key)
        if policy is None:
            raise UnknownDataSourceError(f"No data source matched '{key}'", data_source_id=key)
        return [policy]


def load_policies(module_name: Optional[str] = None) -> PolicyRegistry:
    """Import the policy module and build a registry from its POLICIES."""
    module_name = module_name or settings.SYNC_POLICY_MODULE
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"Cannot import policy module '{module_name}': {exc}") from exc

    policies = getattr(module, "POLICIES", None)
    if policies is None:
        raise ConfigError(f"Policy module '{module_name}' does not define POLICIES")

    registry = PolicyRegistry(policies)
    log.info(f"Loaded {len(registry)} policies from {module_name}")
    return registry
