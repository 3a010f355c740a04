"""Configuration loader."""

import json
import logging
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Optional, Union

import yaml
from dotenv import load_dotenv

from .models import Config
from ..router import patterns
from ..router.models import DEFAULT_MAILBOX_NAME, HeaderFilter, MailboxDefinition, SourceFilter

logger = logging.getLogger(__name__)

ENV_PREFIX = "MAIL_ROUTER_"


class ConfigError(ValueError):
    """Raised when mailbox configuration cannot be loaded."""


def parse_mailbox(text: str) -> MailboxDefinition:
    """Parse a mailbox from its textual form.

    Two shapes are accepted: the legacy ``Name=Recipients`` form and a JSON
    object with ``name``, ``recipients``, ``headerFilters`` and
    ``sourceFilters`` fields (field names are case-insensitive).
    """
    if not isinstance(text, str):
        raise ConfigError(f"Mailbox must be a string, got {type(text).__name__}")

    if text.lstrip().startswith("{"):
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Mailbox JSON format is invalid: {e}") from e
        return mailbox_from_dict(data)

    name, sep, recipients = text.partition("=")
    if not sep:
        raise ConfigError('Mailbox must be in format "Name=Recipients" or valid JSON')
    if not name.strip():
        raise ConfigError(f"Mailbox name is empty in {text!r}")

    return MailboxDefinition(name=name.strip(), recipients=recipients.strip())


def mailbox_from_dict(data: dict) -> MailboxDefinition:
    """Build a mailbox from a structured object (parsed JSON or YAML)."""
    if not isinstance(data, dict):
        raise ConfigError(f"Mailbox must be an object, got {type(data).__name__}")

    fields = _normalize_keys(data)

    name = fields.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ConfigError(f"Mailbox is missing a name: {data!r}")
    name = name.strip()

    recipients = fields.get("recipients")
    if isinstance(recipients, list):
        # YAML lists are a convenience spelling of the comma-separated form
        recipients = ", ".join(_optional_str(r, f"{name}.recipients") or "" for r in recipients)
    else:
        recipients = _optional_str(recipients, f"{name}.recipients")

    header_filters = []
    for entry in _filter_list(fields.get("headerfilters"), f"{name}.headerFilters"):
        header = _optional_str(entry.get("header"), f"{name}.headerFilters.header")
        if not header or not header.strip():
            raise ConfigError(f"Mailbox '{name}' has a header filter without a header name")
        header_filters.append(HeaderFilter(
            header=header.strip(),
            pattern=_optional_str(entry.get("pattern"), f"{name}.headerFilters.pattern"),
        ))

    source_filters = []
    for entry in _filter_list(fields.get("sourcefilters"), f"{name}.sourceFilters"):
        pattern = _optional_str(entry.get("pattern"), f"{name}.sourceFilters.pattern")
        if not pattern or not pattern.strip():
            raise ConfigError(f"Mailbox '{name}' has a source filter without a pattern")
        source_filters.append(SourceFilter(pattern=pattern))

    return MailboxDefinition(
        name=name,
        recipients=recipients,
        header_filters=tuple(header_filters),
        source_filters=tuple(source_filters),
    )


def build_mailboxes(
    entries: Optional[Iterable[Union[str, dict, MailboxDefinition]]],
    ensure_default: bool = True,
) -> tuple[MailboxDefinition, ...]:
    """Parse and validate an ordered list of mailbox entries.

    When ``ensure_default`` is set and no mailbox is called ``Default``, a
    catch-all ``Default`` mailbox is appended.
    """
    if entries is None:
        entries = []
    if isinstance(entries, (str, dict)) or not isinstance(entries, Iterable):
        raise ConfigError("mailboxes must be a list")

    mailboxes = []
    seen = set()
    for entry in entries:
        if isinstance(entry, MailboxDefinition):
            mailbox = entry
        elif isinstance(entry, str):
            mailbox = parse_mailbox(entry)
        elif isinstance(entry, dict):
            mailbox = mailbox_from_dict(entry)
        else:
            raise ConfigError(f"Unsupported mailbox entry: {entry!r}")

        key = mailbox.name.lower()
        if key in seen:
            raise ConfigError(f"Duplicate mailbox name '{mailbox.name}'")
        seen.add(key)

        errors = _validate_mailbox(mailbox)
        if errors:
            raise ConfigError(f"Mailbox '{mailbox.name}': " + "; ".join(errors))

        mailboxes.append(mailbox)

    if ensure_default and DEFAULT_MAILBOX_NAME.lower() not in seen:
        mailboxes.append(MailboxDefinition(name=DEFAULT_MAILBOX_NAME, recipients="*"))

    return tuple(mailboxes)


def load_config(config_path: Union[str, Path] = "config.yaml") -> Config:
    """Load configuration from YAML file and environment."""
    load_dotenv()

    yaml_config = {}
    config_file = Path(config_path)
    if config_file.exists():
        try:
            with open(config_file) as f:
                yaml_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_file}: {e}") from e
        if not isinstance(yaml_config, dict):
            raise ConfigError(f"{config_file} must contain a mapping at the top level")

    entries = _env_mailboxes() or yaml_config.get("mailboxes", [])

    regex_timeout = os.getenv(f"{ENV_PREFIX}REGEX_TIMEOUT", yaml_config.get("regex_timeout", patterns.REGEX_TIMEOUT))
    try:
        regex_timeout = float(regex_timeout)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"regex_timeout must be a number, got {regex_timeout!r}") from e
    if regex_timeout <= 0:
        raise ConfigError("regex_timeout must be positive")

    ensure_default = _parse_bool(
        "ensure_default_mailbox",
        os.getenv(f"{ENV_PREFIX}ENSURE_DEFAULT", yaml_config.get("ensure_default_mailbox", True)),
    )

    log_dir = os.getenv(f"{ENV_PREFIX}LOG_DIR", yaml_config.get("log_dir", "logs"))

    mailboxes = build_mailboxes(entries, ensure_default=ensure_default)
    logger.info("Loaded %d mailbox(es) from %s", len(mailboxes), config_file)

    return Config(
        mailboxes=mailboxes,
        regex_timeout=regex_timeout,
        ensure_default_mailbox=ensure_default,
        log_dir=str(log_dir),
    )


class MailboxStore:
    """Holds the current mailbox list and swaps it wholesale on reload.

    Routing calls read ``mailboxes`` once and keep that tuple for the whole
    decision, so a reload never changes a list that is being evaluated.
    """

    def __init__(self, config_path: Union[str, Path] = "config.yaml", mailboxes: Iterable[MailboxDefinition] = ()):
        self.config_path = Path(config_path)
        self.config: Optional[Config] = None
        self._mailboxes = tuple(mailboxes)
        self._mtime: Optional[float] = None

    @property
    def mailboxes(self) -> tuple[MailboxDefinition, ...]:
        return self._mailboxes

    def publish(self, mailboxes: Iterable[MailboxDefinition]) -> None:
        """Replace the current mailbox list with a new snapshot."""
        self._mailboxes = tuple(mailboxes)

    def reload(self) -> Config:
        """Load the config file again and publish its mailboxes.

        On failure the previous mailbox list stays in place.
        """
        try:
            config = load_config(self.config_path)
        except ConfigError:
            logger.error("Reload of %s failed, keeping %d mailbox(es)", self.config_path, len(self._mailboxes))
            raise

        self.config = config
        self._mtime = self._current_mtime()
        self.publish(config.mailboxes)
        return config

    def reload_if_changed(self) -> bool:
        """Reload when the config file's modification time changed."""
        if self.config is not None and self._current_mtime() == self._mtime:
            return False
        self.reload()
        return True

    def _current_mtime(self) -> Optional[float]:
        try:
            return self.config_path.stat().st_mtime
        except OSError:
            return None


def _normalize_keys(data: dict) -> dict:
    return {str(k).replace("_", "").replace("-", "").lower(): v for k, v in data.items()}


def _optional_str(value, what: str) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise ConfigError(f"{what} must be a string, got {type(value).__name__}")


def _filter_list(value, what: str) -> list[dict]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"{what} must be a list")
    entries = []
    for entry in value:
        if not isinstance(entry, dict):
            raise ConfigError(f"{what} entries must be objects, got {entry!r}")
        entries.append(_normalize_keys(entry))
    return entries


def _validate_mailbox(mailbox: MailboxDefinition) -> list[str]:
    errors = patterns.validate(mailbox.recipients)
    for f in mailbox.header_filters:
        errors.extend(patterns.validate(f.pattern))
    for f in mailbox.source_filters:
        errors.extend(patterns.validate(f.pattern))
    return errors


def _env_mailboxes() -> list[str]:
    """Read MAIL_ROUTER_MAILBOX_0, _1, ... until the first gap."""
    entries = []
    index = 0
    while True:
        value = os.getenv(f"{ENV_PREFIX}MAILBOX_{index}")
        if value is None:
            return entries
        entries.append(value)
        index += 1


def _parse_bool(what: str, value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ConfigError(f"{what} must be true or false, got {value!r}")
