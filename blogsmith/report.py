from __future__ import annotations

import logging
from pathlib import Path

from .utils import format_size, list_files

logger = logging.getLogger(__name__)


def build_report(output_dir: Path) -> dict:
    files = []
    total = 0
    for path in list_files(output_dir):
        size = path.stat().st_size
        total += size
        files.append((path.relative_to(output_dir).as_posix(), size))
    return {"count": len(files), "total_bytes": total, "files": files}


def log_report(report: dict) -> None:
    for name, size in report["files"]:
        logger.debug("  %-48s %10s", name, format_size(size))
    logger.info("Output: %d file(s), %s", report["count"], format_size(report["total_bytes"]))
