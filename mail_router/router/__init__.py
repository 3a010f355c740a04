"""Mail Router - Router package."""

from .engine import MailboxRouter
from .models import (
    DEFAULT_MAILBOX_NAME,
    HeaderFilter,
    HeaderMap,
    MailboxDefinition,
    RoutingDecision,
    SourceFilter,
)
from .patterns import matches

__all__ = [
    "MailboxRouter",
    "MailboxDefinition",
    "HeaderFilter",
    "SourceFilter",
    "HeaderMap",
    "RoutingDecision",
    "DEFAULT_MAILBOX_NAME",
    "matches",
]
