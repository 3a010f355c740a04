"""Configuration models."""

from dataclasses import dataclass, field

from ..router.models import MailboxDefinition
from ..router.patterns import REGEX_TIMEOUT


@dataclass(frozen=True)
class Config:
    """Main configuration container."""
    mailboxes: tuple[MailboxDefinition, ...] = field(default_factory=tuple)
    regex_timeout: float = REGEX_TIMEOUT
    ensure_default_mailbox: bool = True
    log_dir: str = "logs"
