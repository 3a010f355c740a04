"""Mail Router - Configuration package."""

from .loader import (
    ConfigError,
    MailboxStore,
    build_mailboxes,
    load_config,
    mailbox_from_dict,
    parse_mailbox,
)
from .models import Config

__all__ = [
    "load_config",
    "parse_mailbox",
    "mailbox_from_dict",
    "build_mailboxes",
    "MailboxStore",
    "ConfigError",
    "Config",
]
