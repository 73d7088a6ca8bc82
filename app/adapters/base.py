"""
Platform adapter interface.

Adapters encapsulate provider-specific HTTP calls and payload shapes and
expose normalized types to the commands.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from app.core.normalizer import NormalizedEntry
from app.schemas.outbound import OutboundMessage, OutboundSendResult


@dataclass(frozen=True)
class ResolvedMedia:
    content: bytes
    content_type: str
    declared_mime_type: Optional[str] = None


class BasePlatformAdapter(ABC):
    """Contract for platform adapters."""

    @abstractmethod
    def parse_webhook(self, raw_payload: Any) -> list[NormalizedEntry]:
        """Parse a decoded webhook document into conversation entries. Raise if invalid."""
        ...

    @abstractmethod
    async def send(self, outbound: OutboundMessage) -> OutboundSendResult:
        """Send an outbound message. Raise UpstreamProviderError on failure."""
        ...

    @abstractmethod
    async def fetch_media(self, media_id: str) -> ResolvedMedia:
        """Resolve and download a media object. Raise MediaResolutionError on failure."""
        ...

    def verify_webhook(self, body: bytes, signature_header: Optional[str]) -> bool:
        """
        Verify webhook request authenticity. Override if platform supports it.
        Return True if valid or verification not required; False to reject.
        """
        return True
