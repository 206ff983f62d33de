from __future__ import annotations

import datetime as dt
import logging
import re
from pathlib import Path

from .utils import format_date, parse_bool

logger = logging.getLogger(__name__)

SECTION_RE = re.compile(r"^\[(?P<name>[^\[\]]+)\]$")
LIST_ITEM_RE = re.compile(r"^(?P<label>[^:]+?):\s+(?P<value>.*)$")

REQUIRED_KEYS = (
    ("build", "posts_dir"),
    ("build", "templates_dir"),
    ("build", "output_dir"),
)
ROUTING_TYPES = {"md5", "sequential"}
DEFAULT_ROUTING = "md5"
DEFAULT_BASE_PATH = "/article"
DEFAULT_INDEX_LIMIT = 5


class ConfigError(ValueError):
    pass


def parse_list_item(text: str) -> object:
    match = LIST_ITEM_RE.match(text)
    if match:
        return {match.group("label").strip(): match.group("value").strip()}
    return text


def append_item(section: dict, key: str, text: str) -> None:
    current = section.get(key)
    if not isinstance(current, list):
        current = [] if current in (None, "") else [parse_list_item(current)]
        section[key] = current
    item = text.strip()
    if item:
        current.append(parse_list_item(item))


def parse_config(text: str, source: str = "<config>") -> dict:
    config: dict[str, dict] = {}
    section = None
    last_key = None
    for lineno, raw_line in enumerate(text.lstrip("\ufeff").splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        match = SECTION_RE.match(line)
        if match:
            name = match.group("name").strip()
            section = config.setdefault(name, {})
            last_key = None
            continue
        if section is None:
            continue
        if line.startswith("- ") or line == "-":
            if last_key is None:
                raise ConfigError(f"{source}:{lineno}: list item without a key: {line!r}")
            append_item(section, last_key, line[1:])
            continue
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ConfigError(f"{source}:{lineno}: expected 'key = value', got {line!r}")
        value = value.strip()
        last_key = key
        if value.startswith("- "):
            append_item(section, key, value[1:])
        elif value == "" and isinstance(section.get(key), list):
            continue
        else:
            section[key] = value
    return config


def validate_config(config: dict, source: str = "<config>") -> None:
    missing = []
    for section, key in REQUIRED_KEYS:
        value = config.get(section, {}).get(key)
        if not isinstance(value, str) or not value.strip():
            missing.append(f"{section}.{key}")
    if "base_url" not in config.get("site", {}):
        missing.append("site.base_url")
    if missing:
        raise ConfigError(f"{source}: missing required setting(s): {', '.join(missing)}")

    routing = config.setdefault("routing", {})
    route_type = str(routing.get("type") or DEFAULT_ROUTING).strip().lower()
    if route_type not in ROUTING_TYPES:
        raise ConfigError(
            f"{source}: routing.type must be one of {', '.join(sorted(ROUTING_TYPES))}, got {route_type!r}"
        )
    routing["type"] = route_type
    routing["base_path"] = str(routing.get("base_path") or DEFAULT_BASE_PATH)

    build = config["build"]
    raw_limit = str(build.get("index_limit", DEFAULT_INDEX_LIMIT)).strip()
    if not raw_limit.isdigit() or int(raw_limit) <= 0:
        raise ConfigError(f"{source}: build.index_limit must be a positive integer")
    build["index_limit"] = int(raw_limit)
    if "workers" in build and not re.fullmatch(r"-?\d+", str(build["workers"]).strip()):
        raise ConfigError(f"{source}: build.workers must be an integer")


def load_config(path: Path) -> dict:
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc
    config = parse_config(text, str(path))
    validate_config(config, str(path))
    config["_path"] = path.resolve()
    logger.debug("Loaded config from %s (sections: %s)", path, ", ".join(k for k in config if k != "_path"))
    return config


def config_root(config: dict) -> Path:
    path = config.get("_path")
    return Path(path).parent if path else Path.cwd()


def resolve_dir(config: dict, key: str):
    value = (config.get("build", {}).get(key) or "").strip()
    if not value:
        return None
    path = Path(value)
    if not path.is_absolute():
        path = config_root(config) / path
    return path


def section_items(config: dict, name: str) -> list:
    items = []
    for value in config.get(name, {}).values():
        if isinstance(value, list):
            items.extend(value)
    return items


def site_context(config: dict, generated: dt.datetime) -> dict:
    """Assemble the read-only context merged into every template render."""
    return {
        "site": dict(config.get("site", {})),
        "features": {key: parse_bool(value) for key, value in config.get("features", {}).items()},
        "social": dict(config.get("social", {})),
        "tech": section_items(config, "tech"),
        "gists": section_items(config, "gists"),
        "format_date": format_date,
        "generated": generated,
    }
