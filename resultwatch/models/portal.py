"""Portal account and observed-item data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

MAX_ITEM_TEXT = 200


class ItemCategory(str, Enum):
    """Where on the notifications page an item was found."""

    DROPDOWN = "dropdown"
    KEYWORD = "keyword"
    TABLE_ROW = "tableRow"


@dataclass(frozen=True)
class PortalCredentials:
    """Login for one portal account."""

    username: str
    password: str = field(repr=False)


@dataclass
class Account:
    """A portal identity checked on behalf of a recipient."""

    account_id: str
    display_name: str
    credentials: PortalCredentials
    push_tokens: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ObservedItem:
    """A notification-like item read off the portal in one pass.

    ``local_id`` is positional and only meaningful within the pass that
    produced it; items are compared across passes by their text.
    """

    local_id: str
    text: str
    category: ItemCategory
    timestamp: datetime
    related_visit_id: str | None = None
    detail_url: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.local_id,
            "text": self.text,
            "type": self.category.value,
            "visit_id": self.related_visit_id,
            "visit_url": self.detail_url,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class LocalizedText:
    """Message text in the primary (Arabic) and fallback (English) locale."""

    primary: str
    fallback: str

    def to_dict(self) -> dict:
        return {"ar": self.primary, "en": self.fallback}


@dataclass(frozen=True)
class DeliveryCandidate:
    """A new item ready to be pushed to the account's devices."""

    item: ObservedItem
    result_url: str | None
    body: LocalizedText
    link_text: LocalizedText = LocalizedText(primary="هنا", fallback="here")

    def to_dict(self) -> dict:
        data = self.item.to_dict()
        data["result_url"] = self.result_url
        data["app_message"] = {
            **self.body.to_dict(),
            "link_text": self.link_text.to_dict(),
        }
        return data
