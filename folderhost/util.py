"""
Shared helpers: content sniffing, HTML templates and logging
"""
from __future__ import annotations

import enum
import io
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Sequence

ASSETS_DIR = Path(__file__).resolve().parent / "assets"

# Generic HTML page used as the response to errors
ERROR_HTML = (ASSETS_DIR / "error.html").read_text(encoding="utf-8")

# HTML page used as the template for a directory listing
DIRECTORY_LISTING_HTML = (ASSETS_DIR / "directory_listing.html").read_text(encoding="utf-8")

# Port range scanned when no port was given
PORT_SCAN_LOWEST = 8000
PORT_SCAN_HIGHEST = 9999

SNIFF_CHUNK_SIZE = 1024


class ContentClassification(enum.Enum):
    BINARY = "binary"
    TEXT = "text"


def log(message: str, level: str = "INFO") -> None:
    """Log messages with timestamp"""
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    stream = sys.stderr if level in ("WARNING", "ERROR") else sys.stdout
    print(f"[{timestamp}] {level}: {message}", file=stream)


def uppercase_first(s: str) -> str:
    """Uppercase the first character of ``s``, leaving the rest untouched"""
    return s[:1].upper() + s[1:]


def classify(source) -> ContentClassification:
    """Tell binary from text by looking for a zero byte.

    ``source`` is bytes, a str (classified by its UTF-8 encoding), a
    ``Path``/path-like naming a file, or a binary stream. Input is read in
    1024-byte chunks; an unreadable file counts as text.
    """
    if isinstance(source, str):
        source = source.encode("utf-8")
    if isinstance(source, (bytes, bytearray, memoryview)):
        return _classify_stream(io.BytesIO(source))
    if isinstance(source, os.PathLike):
        try:
            with open(source, "rb") as f:
                return _classify_stream(f)
        except OSError:
            return ContentClassification.TEXT
    return _classify_stream(source)


def _classify_stream(stream) -> ContentClassification:
    while True:
        chunk = stream.read(SNIFF_CHUNK_SIZE)
        if not chunk:
            return ContentClassification.TEXT
        if b"\x00" in chunk:
            return ContentClassification.BINARY


def render(template: str, substitutions: Sequence[str]) -> str:
    """Fill out an HTML template.

    Every ``{i}`` placeholder is replaced by ``substitutions[i]``, in order.
    All placeholders used by the template must be supplied, even if empty.
    Values are inserted verbatim, so escape untrusted input beforehand.
    """
    result = template
    for i, value in enumerate(substitutions):
        result = result.replace("{%d}" % i, value)
    return result
