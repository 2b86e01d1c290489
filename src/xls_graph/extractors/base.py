"""Common base for workbook extractors."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any
from zipfile import BadZipFile, ZipFile

from openpyxl import Workbook

log = logging.getLogger(__name__)


class BaseExtractor(ABC):
    """An extraction stage over one open workbook.

    Subclasses read through openpyxl where it exposes what they need and
    fall back to the raw archive parts otherwise.
    """

    name: str = "base"

    def __init__(self, workbook: Workbook, file_path: Path):
        self.workbook = workbook
        self.file_path = Path(file_path)

    @abstractmethod
    def extract(self) -> Any:
        """Run the stage and return its output."""

    def read_entries(self, prefix: str) -> dict[str, bytes]:
        """Raw archive parts whose path starts with ``prefix``.

        An unreadable archive yields an empty mapping.
        """
        try:
            with ZipFile(self.file_path) as zf:
                return {item: zf.read(item) for item in zf.namelist() if item.startswith(prefix)}
        except (OSError, BadZipFile) as e:
            log.debug("No %s parts in %s: %s", prefix, self.file_path.name, e)
            return {}
