"""Router models - mailbox definitions, filters and decisions."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional, Union

DEFAULT_MAILBOX_NAME = "Default"


@dataclass(frozen=True)
class HeaderFilter:
    """Match a message header by name and, optionally, by value pattern.

    An empty pattern only requires the header to be present.
    """
    header: str
    pattern: Optional[str] = None

    def to_dict(self) -> dict:
        return {"header": self.header, "pattern": self.pattern}


@dataclass(frozen=True)
class SourceFilter:
    """Match the sending client's hostname, falling back to its IP address."""
    pattern: Optional[str] = None

    def to_dict(self) -> dict:
        return {"pattern": self.pattern}


@dataclass(frozen=True)
class MailboxDefinition:
    """A configured destination mailbox."""
    name: str
    recipients: Optional[str] = None
    header_filters: tuple[HeaderFilter, ...] = field(default_factory=tuple)
    source_filters: tuple[SourceFilter, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # Absent filter lists behave exactly like empty ones
        object.__setattr__(self, "header_filters", tuple(self.header_filters or ()))
        object.__setattr__(self, "source_filters", tuple(self.source_filters or ()))

    @property
    def is_catch_all(self) -> bool:
        """True for an unfiltered mailbox accepting every recipient."""
        return (
            (self.recipients or "").strip() == "*"
            and not self.header_filters
            and not self.source_filters
        )

    def to_dict(self) -> dict:
        """Convert to the structured (JSON) mailbox representation."""
        return {
            "name": self.name,
            "recipients": self.recipients,
            "headerFilters": [f.to_dict() for f in self.header_filters],
            "sourceFilters": [f.to_dict() for f in self.source_filters],
        }


class HeaderMap(Mapping):
    """Read-only header mapping with case-insensitive names.

    Keys are stored lower-cased; the first spelling seen is kept for
    iteration. When a name occurs more than once the first value wins.
    """

    def __init__(self, headers: Union[Mapping, Iterable[tuple[str, str]], None] = None):
        self._items: dict[str, tuple[str, str]] = {}
        if headers is None:
            return
        pairs = headers.items() if isinstance(headers, Mapping) else headers
        for name, value in pairs:
            key = str(name).lower()
            if key not in self._items:
                self._items[key] = (str(name), "" if value is None else str(value))

    @classmethod
    def coerce(cls, headers) -> Optional["HeaderMap"]:
        """Return headers as a HeaderMap, passing None through."""
        if headers is None or isinstance(headers, cls):
            return headers
        return cls(headers)

    def __getitem__(self, name: str) -> str:
        if not isinstance(name, str):
            raise KeyError(name)
        return self._items[name.lower()][1]

    def __contains__(self, name) -> bool:
        return isinstance(name, str) and name.lower() in self._items

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"HeaderMap({dict(self.items())!r})"


@dataclass
class RoutingDecision:
    """Routing decision for one envelope recipient."""
    recipient: str
    mailbox: Optional[MailboxDefinition]
    client_hostname: Optional[str] = None
    client_ip: Optional[str] = None

    @property
    def matched(self) -> bool:
        return self.mailbox is not None

    @property
    def mailbox_name(self) -> Optional[str]:
        return self.mailbox.name if self.mailbox else None

    @property
    def source(self) -> str:
        """Return where the decision came from."""
        if self.mailbox:
            return f"Mailbox: {self.mailbox.name}"
        return "No match"
