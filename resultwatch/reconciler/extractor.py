"""Notification extraction from a rendered portal page."""

import re

from ..config import PortalSite
from ..models import MAX_ITEM_TEXT, ItemCategory, ObservedItem
from ..portal import DocumentModel

VISIT_ID_PATTERN = re.compile(r"VisitId=(\d+)")

# Phrases the portal uses when a result is ready, English and Arabic
RESULT_READY_PHRASES = (
    "Your Result is Ready",
    "النتيجة جاهزة",
    "Result Ready",
    "نتيجة",
    "Ready in",
)

MIN_TEXT_LENGTH = 5
READ_ALL_LABEL = "Read all"
CELL_SEPARATOR = " | "


def _truncate(text: str) -> str:
    return text[:MAX_ITEM_TEXT]


def parse_visit_id(href: str | None) -> str | None:
    """Pull the visit id out of a link, if it has one."""
    if not href:
        return None
    match = VISIT_ID_PATTERN.search(href)
    return match.group(1) if match else None


def extract(document: DocumentModel, site: PortalSite | None = None) -> list[ObservedItem]:
    """Collect notification items from the three sources on the page.

    Deterministic for a given document: item timestamps come from the
    document's fetch time and ids from positions within each source.
    """
    site = site or PortalSite()
    items: list[ObservedItem] = []

    for idx, entry in enumerate(document.notification_entries):
        text = entry.text.strip()
        if len(text) <= MIN_TEXT_LENGTH or READ_ALL_LABEL in text:
            continue
        visit_id = parse_visit_id(entry.href)
        items.append(
            ObservedItem(
                local_id=f"notification_{idx}",
                text=_truncate(text),
                category=ItemCategory.DROPDOWN,
                timestamp=document.fetched_at,
                related_visit_id=visit_id,
                detail_url=site.visit_url(visit_id) if visit_id else None,
            )
        )

    for idx, line in enumerate(document.body_text.split("\n")):
        if len(line) <= MIN_TEXT_LENGTH:
            continue
        if not any(phrase in line for phrase in RESULT_READY_PHRASES):
            continue
        items.append(
            ObservedItem(
                local_id=f"keyword_{idx}",
                text=_truncate(line.strip()),
                category=ItemCategory.KEYWORD,
                timestamp=document.fetched_at,
            )
        )

    for idx, cells in enumerate(document.table_rows):
        if not cells:
            continue
        row_text = CELL_SEPARATOR.join(cells)
        if len(row_text) <= MIN_TEXT_LENGTH:
            continue
        items.append(
            ObservedItem(
                local_id=f"result_{idx}",
                text=_truncate(row_text),
                category=ItemCategory.TABLE_ROW,
                timestamp=document.fetched_at,
            )
        )

    return items


def latest_detail_link(document: DocumentModel) -> str | None:
    """The most recent visit detail link on the page (links are newest first)."""
    for href in document.visit_links:
        if parse_visit_id(href):
            return href
    return None
