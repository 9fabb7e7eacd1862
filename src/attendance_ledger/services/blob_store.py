"""Blob store protocol for receipt files.

Receipt content is opaque: the ledger stores a reference and asks the
store for a retrievable URL.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote


class BlobStore(Protocol):
    """Resolves blob references to URLs."""

    def public_url(self, reference: str) -> str:
        """Return a URL the client can fetch the blob from."""
        ...


@dataclass(frozen=True)
class PublicUrlBlobStore:
    """Blob store serving objects under a public bucket URL."""

    base_url: str

    def public_url(self, reference: str) -> str:
        return f"{self.base_url.rstrip('/')}/{quote(reference.lstrip('/'))}"
