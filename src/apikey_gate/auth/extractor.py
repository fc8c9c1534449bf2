"""Pull the raw API key out of a request header."""

from __future__ import annotations

from collections.abc import Mapping

from apikey_gate.constants import DEFAULT_HEADER, DEFAULT_PREFIX


class CredentialExtractor:
    """Reads one named header and strips a fixed literal prefix.

    Args:
        header: Header name. Lookup is case-insensitive.
        prefix: Literal that must start the header value, separator included.
    """

    def __init__(self, header: str = DEFAULT_HEADER, prefix: str = DEFAULT_PREFIX) -> None:
        if not header:
            raise ValueError("header must not be empty")
        if not prefix:
            raise ValueError("prefix must not be empty")
        self.header = header
        self.prefix = prefix

    def extract(self, header_value: str | None) -> str | None:
        """Return the credential after the prefix, or ``None``.

        A missing header and a value without the exact prefix both yield
        ``None``. The remainder is returned as-is, so ``"Bearer "`` gives ``""``.
        """
        if header_value is None or not header_value.startswith(self.prefix):
            return None
        return header_value[len(self.prefix) :]

    def extract_from(self, headers: Mapping[str, str]) -> str | None:
        """Look the configured header up in a lowercase-key mapping and extract."""
        return self.extract(headers.get(self.header.lower()))
