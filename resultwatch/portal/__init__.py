"""Patient portal access."""

from .document import DocumentEntry, DocumentModel, parse_document
from .session import (
    IPortalClient,
    IPortalSession,
    PlaywrightPortalClient,
    PlaywrightPortalSession,
)

__all__ = [
    "DocumentEntry",
    "DocumentModel",
    "parse_document",
    "IPortalClient",
    "IPortalSession",
    "PlaywrightPortalClient",
    "PlaywrightPortalSession",
]
