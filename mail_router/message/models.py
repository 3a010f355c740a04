"""Inbound message data models."""

import email
from dataclasses import dataclass, field
from email.header import decode_header
from email.utils import getaddresses
from pathlib import Path
from typing import Optional, Union

from ..router.models import HeaderMap


@dataclass
class InboundMessage:
    """What the SMTP session hands to the router for one message."""
    recipients: list[str]
    client_hostname: Optional[str] = None
    client_ip: Optional[str] = None
    headers: HeaderMap = field(default_factory=HeaderMap)

    def __post_init__(self):
        self.headers = HeaderMap.coerce(self.headers) or HeaderMap()

    @classmethod
    def from_bytes(
        cls,
        raw: bytes,
        recipients: Optional[list[str]] = None,
        client_hostname: Optional[str] = None,
        client_ip: Optional[str] = None,
    ) -> "InboundMessage":
        """Build from a raw RFC 822 message.

        Without explicit envelope recipients, the To and Cc addresses are used.
        """
        msg = email.message_from_bytes(raw)
        headers = HeaderMap((name, _decode_header(value)) for name, value in msg.items())

        if not recipients:
            recipients = [
                addr for _, addr in getaddresses(msg.get_all("To", []) + msg.get_all("Cc", []))
                if addr
            ]

        return cls(
            recipients=list(recipients),
            client_hostname=client_hostname,
            client_ip=client_ip,
            headers=headers,
        )

    @classmethod
    def from_file(cls, path: Union[str, Path], **kwargs) -> "InboundMessage":
        """Build from a .eml file on disk."""
        return cls.from_bytes(Path(path).read_bytes(), **kwargs)

    def to_dict(self) -> dict:
        return {
            "recipients": list(self.recipients),
            "client_hostname": self.client_hostname,
            "client_ip": self.client_ip,
            "headers": dict(self.headers.items()),
        }


def _decode_header(header) -> str:
    """Decode an RFC 2047 encoded header value."""
    if not header:
        return ""

    decoded_parts = []
    for part, encoding in decode_header(str(header)):
        if isinstance(part, bytes):
            try:
                decoded_parts.append(part.decode(encoding or "utf-8", errors="replace"))
            except LookupError:
                # Unknown charset name
                decoded_parts.append(part.decode("utf-8", errors="replace"))
        else:
            decoded_parts.append(part)

    return "".join(decoded_parts)
