from __future__ import annotations

import datetime as dt
import os
import shutil
from pathlib import Path

DATETIME_FMT = "%Y-%m-%d %H:%M"


class BuildError(RuntimeError):
    pass


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    return False


def parse_int(value: object, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def resolve_workers(value: object) -> int:
    workers = parse_int(value, 0)
    if workers <= 0:
        workers = os.cpu_count() or 1
    return max(1, min(workers, 32))


def join_url(base: str, path: str) -> str:
    base = base.rstrip("/")
    path = path.lstrip("/")
    if not path:
        return base
    return f"{base}/{path}"


def iso_date(value: dt.datetime) -> str:
    return value.replace(microsecond=0).isoformat()


def format_date(value: object, fmt: str = DATETIME_FMT) -> str:
    """Template helper: format a datetime, date or ISO string for display."""
    if isinstance(value, str):
        try:
            value = dt.datetime.fromisoformat(value)
        except ValueError:
            return value
    if isinstance(value, (dt.datetime, dt.date)):
        return value.strftime(fmt)
    return "" if value is None else str(value)


def format_size(size: int) -> str:
    if size >= 1024 * 1024:
        return f"{size / (1024 * 1024):.1f} MiB"
    if size >= 1024:
        return f"{size / 1024:.1f} KiB"
    return f"{size} B"


def list_files(root: Path) -> list[Path]:
    if not root.exists():
        return []
    return sorted((path for path in root.rglob("*") if path.is_file()), key=lambda p: p.as_posix())


def clean_output_dir(output_dir: Path, project_root: Path, protected: list[Path]) -> None:
    if not output_dir.exists():
        return
    output_resolved = output_dir.resolve()
    if output_resolved == project_root.resolve():
        raise BuildError(f"Refusing to clean project root: {output_dir}")
    for path in protected:
        resolved = path.resolve()
        if resolved == output_resolved or resolved.is_relative_to(output_resolved):
            raise BuildError(f"Refusing to clean {output_dir}: it contains {path}")
    shutil.rmtree(output_dir)
