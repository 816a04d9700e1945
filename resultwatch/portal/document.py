"""Structured model of a rendered portal page.

The notifications page is reduced to the handful of things the extractor
reads: the notification dropdown entries, the page text, the rows of the
activity table and the links to visit detail pages. Only ``parse_document``
knows the page markup.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from urllib.parse import urljoin

from bs4 import BeautifulSoup

NOTIFICATION_LIST_SELECTOR = ".dropdown-notification"
NOTIFICATION_ENTRY_SELECTOR = "a, li, div"
VISIT_LINK_SELECTOR = 'a[href*="VisitId="]'
TABLE_ROW_SELECTOR = "tbody tr"


@dataclass(frozen=True)
class DocumentEntry:
    """One entry of the notification list."""

    text: str
    href: str = ""


@dataclass
class DocumentModel:
    """What the extractor needs from one rendered page."""

    url: str
    fetched_at: datetime
    body_text: str = ""
    notification_entries: list[DocumentEntry] = field(default_factory=list)
    table_rows: list[list[str]] = field(default_factory=list)
    visit_links: list[str] = field(default_factory=list)  # document order


def parse_document(
    html: str,
    url: str = "",
    fetched_at: datetime | None = None,
) -> DocumentModel:
    """Build a DocumentModel from rendered HTML."""
    soup = BeautifulSoup(html, "html.parser")

    entries = []
    dropdown = soup.select_one(NOTIFICATION_LIST_SELECTOR)
    if dropdown is not None:
        for element in dropdown.select(NOTIFICATION_ENTRY_SELECTOR):
            href = element.get("href") if element.name == "a" else None
            entries.append(
                DocumentEntry(
                    text=element.get_text().strip(),
                    href=urljoin(url, href) if href else "",
                )
            )

    visit_links = [
        urljoin(url, link["href"]) for link in soup.select(VISIT_LINK_SELECTOR)
    ]

    rows = []
    table = soup.find("table")
    if table is not None:
        for row in table.select(TABLE_ROW_SELECTOR):
            rows.append([cell.get_text().strip() for cell in row.find_all("td")])

    body = soup.body or soup
    return DocumentModel(
        url=url,
        fetched_at=fetched_at or datetime.now(timezone.utc),
        body_text=body.get_text("\n"),
        notification_entries=entries,
        table_rows=rows,
        visit_links=visit_links,
    )
