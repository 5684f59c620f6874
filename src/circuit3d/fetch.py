"""Byte fetching for model references.

A reference is an ``http(s)://`` URL, a ``data:`` URI, a ``file://`` URL
or a plain filesystem path.  Timeouts are enforced here; nothing in the
conversion pipeline retries.
"""

from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import unquote_to_bytes, urljoin, urlparse

import requests

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], bytes]

DEFAULT_TIMEOUT = 30.0


class FetchError(IOError):
    """A reference could not be turned into bytes."""


def decode_data_uri(uri: str) -> bytes:
    """Payload of a ``data:`` URI, base64 or percent-encoded."""

    header, sep, payload = uri.partition(",")
    if not sep or not header.startswith("data:"):
        raise FetchError(f"malformed data URI: {uri[:48]}")
    if header.endswith(";base64"):
        try:
            return base64.b64decode(payload, validate=False)
        except ValueError as exc:
            raise FetchError(f"bad base64 in data URI: {exc}") from exc
    return unquote_to_bytes(payload)


def resolve_reference(reference: str, base: Optional[str]) -> str:
    """Resolve ``reference`` against the document it appeared in."""

    if base is None or reference.startswith("data:"):
        return reference
    if urlparse(reference).scheme in ("http", "https", "file"):
        return reference
    if urlparse(base).scheme in ("http", "https", "file"):
        return urljoin(base, reference)
    return str(Path(base).parent / unquote_to_bytes(reference).decode("utf-8"))


class HTTPFetcher:
    """Default fetcher backed by ``requests`` for remote references."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def __call__(self, reference: str) -> bytes:
        if reference.startswith("data:"):
            return decode_data_uri(reference)
        parsed = urlparse(reference)
        if parsed.scheme in ("http", "https"):
            logger.debug("fetching %s", reference)
            try:
                response = self.session.get(reference, timeout=self.timeout)
                response.raise_for_status()
            except requests.RequestException as exc:
                raise FetchError(f"failed to fetch {reference}: {exc}") from exc
            return response.content
        path = Path(unquote_to_bytes(parsed.path).decode("utf-8")) if parsed.scheme == "file" else Path(reference)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise FetchError(f"failed to read {path}: {exc}") from exc


__all__ = ["Fetcher", "FetchError", "HTTPFetcher", "decode_data_uri", "resolve_reference", "DEFAULT_TIMEOUT"]
