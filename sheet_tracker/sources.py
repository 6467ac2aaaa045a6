"""
Fetch boundary: get raw CSV text from a published sheet URL or a local file.

Nothing here interprets the table. Network problems, non-2xx responses and
oversized bodies all surface as TransportFailure; there is no retry.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from urllib.parse import parse_qs, quote, urlparse

import chardet
import requests

from sheet_tracker.errors import TransportFailure

logger = logging.getLogger("sheet_tracker.sources")

CHUNK_SIZE = 64 * 1024
SHEET_ID_RE = re.compile(r"/spreadsheets/d/([^/]+)")
GID_RE = re.compile(r"gid=(\d+)")


def is_remote(source: str) -> bool:
    return urlparse(source).scheme in {"http", "https"}


def normalize_sheet_url(raw_url: str) -> str:
    """Rewrite a Google Sheets edit/share link into its CSV export URL."""
    url = raw_url.strip()
    parsed = urlparse(url)
    if parsed.netloc.lower() != "docs.google.com":
        return url
    match = SHEET_ID_RE.search(parsed.path)
    if not match:
        return url
    query = parse_qs(parsed.query, keep_blank_values=True)
    if query.get("format") == ["csv"] and parsed.path.endswith("/export"):
        return url
    gid = query.get("gid", [None])[0]
    if gid is None:
        fragment_gid = GID_RE.search(parsed.fragment)
        gid = fragment_gid.group(1) if fragment_gid else "0"
    return f"https://docs.google.com/spreadsheets/d/{match.group(1)}/export?format=csv&gid={gid}"


def proxied_url(url: str, proxy_url: str = "") -> str:
    if not proxy_url:
        return url
    return proxy_url + quote(url, safe="")


def decode_bytes(raw: bytes) -> str:
    """UTF-8 first, then chardet's guess, then cp1252 with replacement."""
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        pass
    guess = chardet.detect(raw).get("encoding")
    if guess:
        try:
            return raw.decode(guess)
        except (LookupError, UnicodeDecodeError):
            logger.debug("chardet guess %s could not decode the payload", guess)
    return raw.decode("cp1252", errors="replace")


def fetch_csv(
    url: str,
    *,
    proxy_url: str = "",
    timeout: float = 60.0,
    max_bytes: int = 20 * 1024 * 1024,
) -> str:
    target = proxied_url(normalize_sheet_url(url), proxy_url)
    logger.info("Fetching sheet export from %s", target)
    try:
        response = requests.get(target, timeout=timeout, allow_redirects=True, stream=True)
    except requests.RequestException as exc:
        raise TransportFailure(url, f"Could not reach {url}: {exc}") from exc

    try:
        if not response.ok:
            raise TransportFailure(
                url,
                f"HTTP error {response.status_code} while fetching {url}. "
                "Check the URL and that the sheet is shared as 'anyone with the link can view'.",
                status_code=response.status_code,
            )
        chunks: list[bytes] = []
        downloaded = 0
        try:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if not chunk:
                    continue
                downloaded += len(chunk)
                if downloaded > max_bytes:
                    raise TransportFailure(url, f"Sheet export is larger than {max_bytes} bytes.")
                chunks.append(chunk)
        except requests.RequestException as exc:
            raise TransportFailure(url, f"Connection dropped while reading {url}: {exc}") from exc
    finally:
        response.close()

    logger.info("Fetched %d bytes", downloaded)
    return decode_bytes(b"".join(chunks))


def read_local(path: str | Path) -> str:
    return decode_bytes(Path(path).read_bytes())


def load_text(source: str, *, proxy_url: str = "", timeout: float = 60.0, max_bytes: int = 20 * 1024 * 1024) -> str:
    if is_remote(source):
        return fetch_csv(source, proxy_url=proxy_url, timeout=timeout, max_bytes=max_bytes)
    return read_local(source)
