"""Mail Router - Inbound message package."""

from .models import InboundMessage

__all__ = ["InboundMessage"]
