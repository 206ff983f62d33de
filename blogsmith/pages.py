from __future__ import annotations

import datetime as dt
import html
import json
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from .render import PageRenderer, RenderError, write_text
from .utils import iso_date, join_url

logger = logging.getLogger(__name__)

ARTICLE_DIR = "article"
MANIFEST_NAME = "build_data.json"
SITEMAP_NAME = "sitemap.xml"
MANIFEST_FIELDS = ("title", "categories", "date", "tags", "content", "excerpt", "cover", "id", "file_name", "url")


def build_index(renderer: PageRenderer, output_dir: Path, posts: list[dict], limit: int) -> None:
    renderer.render("index", {"posts": posts[:limit], "page": "index"}, output_dir / "index.html")


def build_post_listing(renderer: PageRenderer, output_dir: Path, posts: list[dict]) -> None:
    renderer.render("post", {"posts": posts, "page": "post"}, output_dir / "post.html")


def build_gists(renderer: PageRenderer, output_dir: Path, gists: list) -> bool:
    if not renderer.has_template("gists"):
        logger.debug("No gists template, skipping gists.html")
        return False
    if not gists:
        logger.debug("No gists configured, skipping gists.html")
        return False
    try:
        renderer.render("gists", {"gists": gists, "page": "gists"}, output_dir / "gists.html")
    except (RenderError, OSError) as exc:
        logger.warning("Could not render gists.html: %s", exc, exc_info=logger.isEnabledFor(logging.DEBUG))
        return False
    return True


def build_articles(renderer: PageRenderer, output_dir: Path, posts: list[dict], workers: int = 1) -> list[dict]:
    if not renderer.has_template("article"):
        if posts:
            logger.warning("No article template, skipping %d article page(s)", len(posts))
        return []

    def render_post(index: int, post: dict) -> None:
        newer = posts[index - 1] if index > 0 else None
        older = posts[index + 1] if index + 1 < len(posts) else None
        renderer.render(
            "article",
            {"post": post, "posts": posts, "newer": newer, "older": older, "page": "article"},
            output_dir / ARTICLE_DIR / post["file_name"],
        )

    failures = []
    max_workers = max(1, min(workers, len(posts))) if posts else 1
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {executor.submit(render_post, index, post): post for index, post in enumerate(posts)}
        for future in as_completed(futures):
            post = futures[future]
            try:
                future.result()
            except (RenderError, OSError) as exc:
                logger.warning(
                    "Could not render article %s (%s): %s",
                    post["file_name"],
                    post["source"],
                    exc,
                    exc_info=logger.isEnabledFor(logging.DEBUG),
                )
                failures.append(post)
    return failures


def manifest_record(post: dict) -> dict:
    record = {key: post.get(key) for key in MANIFEST_FIELDS}
    record["date"] = iso_date(post["date"])
    return record


def build_manifest(output_dir: Path, posts: list[dict], generated: dt.datetime) -> Path:
    path = output_dir / MANIFEST_NAME
    data = {"generated": iso_date(generated), "posts": [manifest_record(post) for post in posts]}
    write_text(path, json.dumps(data, indent=2, ensure_ascii=False))
    return path


def sitemap_entry(url: str, changefreq: str, priority: str, lastmod=None) -> str:
    lines = ["<url>", f"<loc>{html.escape(url)}</loc>"]
    if lastmod is not None:
        lines.append(f"<lastmod>{lastmod.date().isoformat()}</lastmod>")
    lines.append(f"<changefreq>{changefreq}</changefreq>")
    lines.append(f"<priority>{priority}</priority>")
    lines.append("</url>")
    return "\n".join(lines)


def render_sitemap(posts: list[dict], base_url: str, include_gists: bool = False) -> str:
    base_url = base_url.rstrip("/")
    items = [
        sitemap_entry(base_url + "/", "daily", "1.0"),
        sitemap_entry(join_url(base_url, "post.html"), "daily", "0.8"),
    ]
    if include_gists:
        items.append(sitemap_entry(join_url(base_url, "gists.html"), "weekly", "0.5"))
    for post in posts:
        items.append(sitemap_entry(join_url(base_url, post["url"]), "monthly", "0.6", post["date"]))
    return "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
            "\n".join(items),
            "</urlset>",
        ]
    )


def build_sitemap(output_dir: Path, posts: list[dict], base_url: str, include_gists: bool = False) -> Path:
    path = output_dir / SITEMAP_NAME
    write_text(path, render_sitemap(posts, base_url, include_gists))
    return path
