"""Mailbox routing engine."""

import logging
from typing import Iterable, Mapping, Optional

from . import patterns
from .models import HeaderFilter, HeaderMap, MailboxDefinition, RoutingDecision, SourceFilter

logger = logging.getLogger(__name__)


class MailboxRouter:
    """Selects the mailbox that should receive a message.

    Mailboxes are evaluated in configured order and the first one whose
    source filters, header filters and recipient patterns all match wins.
    The router holds no state besides its regex timeout and never mutates
    the mailbox list it is given, so one instance can serve concurrent
    sessions.
    """

    def __init__(self, regex_timeout: float = patterns.REGEX_TIMEOUT):
        self.regex_timeout = regex_timeout

    def find_mailbox_for_recipient(
        self,
        recipient: Optional[str],
        mailboxes: Iterable[MailboxDefinition],
        client_hostname: Optional[str] = None,
        client_ip: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[MailboxDefinition]:
        """Find the mailbox for a recipient, or None if nothing matches."""
        if not recipient or not recipient.strip():
            return None

        headers = HeaderMap.coerce(headers)

        for mailbox in mailboxes:
            if mailbox.source_filters and not all(
                self.matches_source_filter(client_hostname, client_ip, f)
                for f in mailbox.source_filters
            ):
                continue

            if mailbox.header_filters and not all(
                self.matches_header_filter(headers, f)
                for f in mailbox.header_filters
            ):
                continue

            if self.matches_recipient_pattern(recipient, mailbox.recipients):
                return mailbox

        return None

    def route(self, message, mailboxes: Iterable[MailboxDefinition]) -> list[RoutingDecision]:
        """Route every envelope recipient of an inbound message."""
        # Materialize once so generators survive multiple recipients
        mailboxes = tuple(mailboxes)
        decisions = []
        for recipient in message.recipients:
            mailbox = self.find_mailbox_for_recipient(
                recipient,
                mailboxes,
                client_hostname=message.client_hostname,
                client_ip=message.client_ip,
                headers=message.headers,
            )
            logger.debug(
                "Routed %s (client %s [%s]) to %s",
                recipient,
                message.client_hostname or "unknown",
                message.client_ip or "unknown",
                mailbox.name if mailbox else "no mailbox",
            )
            decisions.append(RoutingDecision(
                recipient=recipient,
                mailbox=mailbox,
                client_hostname=message.client_hostname,
                client_ip=message.client_ip,
            ))
        return decisions

    def matches_recipient_pattern(self, recipient: str, recipient_patterns: Optional[str]) -> bool:
        """Check if a recipient matches a mailbox's recipient patterns."""
        return patterns.matches(recipient, recipient_patterns, timeout=self.regex_timeout)

    def matches_header_filter(self, headers: Optional[Mapping[str, str]], header_filter: HeaderFilter) -> bool:
        """Check if message headers satisfy a header filter."""
        if headers is None or header_filter is None:
            return False
        if not header_filter.header or not header_filter.header.strip():
            return False

        headers = HeaderMap.coerce(headers)
        if header_filter.header not in headers:
            return False

        # No pattern: presence is enough
        if not header_filter.pattern or not header_filter.pattern.strip():
            return True

        return patterns.matches(headers[header_filter.header], header_filter.pattern, timeout=self.regex_timeout)

    def matches_source_filter(
        self,
        client_hostname: Optional[str],
        client_ip: Optional[str],
        source_filter: SourceFilter,
    ) -> bool:
        """Check the client hostname, then its IP address, against a source filter."""
        if source_filter is None or not source_filter.pattern or not source_filter.pattern.strip():
            return False

        for candidate in (client_hostname, client_ip):
            if candidate is not None and patterns.matches(candidate, source_filter.pattern, timeout=self.regex_timeout):
                return True
        return False
