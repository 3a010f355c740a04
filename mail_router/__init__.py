"""Mail Router - Select the destination mailbox for inbound mail."""

__version__ = "0.1.0"

# Re-export main components for convenience
from .config import load_config, Config, ConfigError, MailboxStore, parse_mailbox
from .message import InboundMessage
from .router import (
    MailboxRouter,
    MailboxDefinition,
    HeaderFilter,
    SourceFilter,
    HeaderMap,
    RoutingDecision,
)
from .logger import RoutingLogger

__all__ = [
    "load_config",
    "parse_mailbox",
    "Config",
    "ConfigError",
    "MailboxStore",
    "InboundMessage",
    "MailboxRouter",
    "MailboxDefinition",
    "HeaderFilter",
    "SourceFilter",
    "HeaderMap",
    "RoutingDecision",
    "RoutingLogger",
]
