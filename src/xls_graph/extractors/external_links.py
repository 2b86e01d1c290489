"""External link resolver.

Excel stores references to other workbooks as numeric placeholders
(``[1]Prices!C3``). Each index maps to ``xl/externalLinks/externalLink{i}.xml``
and its relationships file names the real workbook.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import unquote

from lxml import etree

from .base import BaseExtractor

log = logging.getLogger(__name__)

MAX_EXTERNAL_LINKS = 20

RELS_PATH = "xl/externalLinks/_rels/externalLink{index}.xml.rels"

_RELATIONSHIP_TAG = "{http://schemas.openxmlformats.org/package/2006/relationships}Relationship"
_TARGET_RE = re.compile(r'Target="([^"]+)"')


def read_entry(entry: Any) -> str | None:
    """Decode a container entry to text.

    Accepts text, raw bytes, or an object exposing a ``content`` attribute
    holding either. Returns None for anything else.
    """
    if entry is None:
        return None
    if isinstance(entry, str):
        return entry
    if isinstance(entry, (bytes, bytearray, memoryview)):
        try:
            return bytes(entry).decode("utf-8")
        except UnicodeDecodeError:
            return None
    content = getattr(entry, "content", None)
    if content is not None and content is not entry:
        return read_entry(content)
    return None


def relationship_targets(xml: str) -> list[str]:
    """Return every relationship Target declared in a .rels document."""
    try:
        root = etree.fromstring(xml.encode("utf-8"))
    except etree.XMLSyntaxError:
        # Truncated or hand-edited rels: fall back to a plain attribute scan
        return _TARGET_RE.findall(xml)
    return [rel.get("Target") for rel in root.iter(_RELATIONSHIP_TAG) if rel.get("Target")]


def _basename(target: str) -> str:
    clean = unquote(target.replace("\\", "/"))
    return clean.rstrip("/").split("/")[-1]


def choose_filename(targets: list[str]) -> str | None:
    """Pick the most canonical filename among relationship targets.

    Targets that do not use the ``file:`` scheme win over those that do;
    among them the shortest basename is chosen. Otherwise the first target's
    basename is used.
    """
    candidates = [(t, _basename(t)) for t in targets]
    candidates = [(t, b) for t, b in candidates if b]
    if not candidates:
        return None
    preferred = [b for t, b in candidates if not t.lower().startswith("file:")]
    if preferred:
        return min(preferred, key=len)
    return candidates[0][1]


def build_external_link_map(files: Mapping[str, Any]) -> dict[str, str]:
    """Map numeric external-link indices to workbook filenames.

    Indices are scanned from 1 upwards and the scan stops at the first
    index without relationship data; links are contiguous.

    Args:
        files: Mapping of internal container path to entry content.

    Returns:
        Mapping such as ``{"1": "Assumptions.xlsx"}``. Unresolvable indices
        are absent.
    """
    link_map: dict[str, str] = {}
    if not files:
        return link_map

    for index in range(1, MAX_EXTERNAL_LINKS + 1):
        xml = read_entry(files.get(RELS_PATH.format(index=index)))
        if not xml:
            break

        filename = choose_filename(relationship_targets(xml))
        if filename:
            link_map[str(index)] = filename
        else:
            log.debug("External link %d has no usable target", index)

    return link_map


class ExternalLinkExtractor(BaseExtractor):
    """Resolves external link indices from the workbook container."""

    name = "external_links"

    def extract(self) -> dict[str, str]:
        """Extract the external-link index map.

        Returns:
            Mapping of index string to workbook filename
        """
        return build_external_link_map(self.read_entries("xl/externalLinks/_rels/"))
