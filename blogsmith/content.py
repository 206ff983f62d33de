from __future__ import annotations

import datetime as dt
import hashlib
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Optional

import markdown
import yaml

logger = logging.getLogger(__name__)

FRONT_MATTER_RE = re.compile(r"\A---[ \t]*\r?\n(?P<meta>.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE)
CODE_BLOCK_RE = re.compile(r'<pre><code(?: class="(?:language-)?(?P<lang>[^"\s]+)[^"]*")?>')
DEFAULT_CATEGORY = "uncategorized"
EXCERPT_LENGTH = 200
ELLIPSIS = "\u2026"
MARKDOWN_EXTENSIONS = ["fenced_code", "tables"]


class FrontMatterError(ValueError):
    pass


def parse_front_matter(text: str) -> tuple[dict, str]:
    # body is returned exactly as it follows the closing delimiter
    clean_text = text.lstrip("\ufeff")
    match = FRONT_MATTER_RE.match(clean_text)
    if not match:
        return {}, clean_text
    try:
        meta = yaml.safe_load(match.group("meta"))
    except yaml.YAMLError as exc:
        raise FrontMatterError(f"invalid front matter: {exc}") from exc
    if meta is None:
        meta = {}
    if not isinstance(meta, dict):
        raise FrontMatterError("front matter must be a mapping")
    meta = {str(key).strip().lower(): value for key, value in meta.items()}
    return meta, clean_text[match.end() :]


def normalize_tags(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = [str(item).strip() for item in value if item is not None]
    else:
        items = [item.strip() for item in str(value).split(",")]
    tags: list[str] = []
    for item in items:
        if item and item not in tags:
            tags.append(item)
    return tags


def normalize_categories(value: object) -> str:
    if isinstance(value, (list, tuple)):
        value = ", ".join(str(item).strip() for item in value if item is not None and str(item).strip())
    text = "" if value is None else str(value).strip()
    return text or DEFAULT_CATEGORY


def parse_date(value: object, default: dt.datetime) -> dt.datetime:
    if value is None or value == "":
        return default
    if isinstance(value, dt.datetime):
        date_value = value
    elif isinstance(value, dt.date):
        date_value = dt.datetime.combine(value, dt.time())
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            date_value = dt.datetime.fromisoformat(text)
        except ValueError as exc:
            raise FrontMatterError(f"invalid date: {value!r}") from exc
    if date_value.tzinfo is not None:
        date_value = date_value.astimezone().replace(tzinfo=None)
    return date_value


def make_excerpt(body: str) -> str:
    return body[:EXCERPT_LENGTH] + ELLIPSIS


def body_digest(body: str) -> str:
    return hashlib.md5(body.encode("utf-8")).hexdigest()


def tag_code_blocks(html_text: str) -> str:
    def repl(match: re.Match) -> str:
        lang = match.group("lang") or "none"
        return f'<pre class="language-{lang}"><code class="language-{lang}">'

    return CODE_BLOCK_RE.sub(repl, html_text)


def render_markdown(body: str) -> str:
    md = markdown.Markdown(extensions=MARKDOWN_EXTENSIONS)
    return tag_code_blocks(md.convert(body))


def read_post(
    file_path: Path,
    posts_dir: Optional[Path] = None,
    render: Callable[[str], str] = render_markdown,
    now: Optional[dt.datetime] = None,
) -> dict:
    text = file_path.read_bytes().decode("utf-8")
    meta, body = parse_front_matter(text)
    now = now or dt.datetime.now()
    title = meta.get("title")
    cover = meta.get("cover")
    source = file_path.name
    if posts_dir is not None:
        try:
            source = file_path.relative_to(posts_dir).as_posix()
        except ValueError:
            pass
    return {
        "title": str(title).strip() if title not in (None, "") else file_path.stem,
        "categories": normalize_categories(meta.get("categories")),
        "date": parse_date(meta.get("date"), now),
        "tags": normalize_tags(meta.get("tags")),
        "content": render(body),
        "excerpt": make_excerpt(body),
        "cover": str(cover) if cover not in (None, "") else None,
        "digest": body_digest(body),
        "source": source,
    }


def parse_post(
    file_path: Path,
    posts_dir: Optional[Path] = None,
    render: Callable[[str], str] = render_markdown,
    now: Optional[dt.datetime] = None,
):
    try:
        return read_post(file_path, posts_dir, render, now)
    except (OSError, UnicodeDecodeError, ValueError) as exc:
        logger.warning(
            "Skipping post %s: %s", file_path, exc, exc_info=logger.isEnabledFor(logging.DEBUG)
        )
    except Exception as exc:
        logger.warning(
            "Skipping post %s: markdown conversion failed: %s",
            file_path,
            exc,
            exc_info=logger.isEnabledFor(logging.DEBUG),
        )
    return None


def discover_posts(posts_dir: Path) -> list[Path]:
    return sorted(
        (path for path in posts_dir.rglob("*.md") if path.is_file()),
        key=lambda p: p.relative_to(posts_dir).as_posix(),
    )


def sort_posts(posts: list[dict]) -> list[dict]:
    # sorted() is stable with reverse=True, so equal dates keep discovery order
    return sorted(posts, key=lambda post: post["date"], reverse=True)


def load_posts(
    posts_dir: Path,
    render: Callable[[str], str] = render_markdown,
    workers: int = 1,
    now: Optional[dt.datetime] = None,
) -> list[dict]:
    post_files = discover_posts(posts_dir)
    now = now or dt.datetime.now()
    logger.debug("Discovered %d Markdown file(s) under %s", len(post_files), posts_dir)

    def parse_one(path: Path):
        return parse_post(path, posts_dir, render, now)

    parse_workers = min(max(1, workers), len(post_files)) if post_files else 1
    if parse_workers > 1:
        with ThreadPoolExecutor(max_workers=parse_workers) as executor:
            parsed = list(executor.map(parse_one, post_files))
    else:
        parsed = [parse_one(path) for path in post_files]
    posts = [post for post in parsed if post is not None]
    skipped = len(post_files) - len(posts)
    if skipped:
        logger.warning("%d of %d post file(s) could not be parsed", skipped, len(post_files))
    return sort_posts(posts)
