from __future__ import annotations

import datetime as dt
import logging
import time
from pathlib import Path
from typing import Callable, Optional

from .config import config_root, resolve_dir, site_context
from .content import load_posts, render_markdown
from .pages import build_articles, build_gists, build_index, build_manifest, build_post_listing, build_sitemap
from .render import PageRenderer, RenderError, copy_static, template_path
from .report import build_report, log_report
from .routing import assign_routes
from .utils import BuildError, clean_output_dir, resolve_workers

logger = logging.getLogger(__name__)

REQUIRED_TEMPLATES = ("index", "post")
ASSETS_DIR = "assets"


def check_inputs(posts_dir: Path, templates_dir: Path) -> None:
    if not posts_dir.is_dir():
        raise BuildError(f"Posts directory not found: {posts_dir}")
    if not templates_dir.is_dir():
        raise BuildError(f"Templates directory not found: {templates_dir}")
    for name in REQUIRED_TEMPLATES:
        path = template_path(templates_dir, name)
        if not path.is_file():
            raise BuildError(f"Required template {name!r} not found: {path}")


def warn(message: str, *args: object) -> None:
    logger.warning(message, *args, exc_info=logger.isEnabledFor(logging.DEBUG))


def build_site(
    config: dict,
    markdown_renderer: Callable[[str], str] = render_markdown,
    template_renderer: Optional[Callable[[str, dict], str]] = None,
    now: Optional[dt.datetime] = None,
) -> dict:
    # missing inputs and required pages raise BuildError, everything else is logged
    start = time.perf_counter()
    generated = now or dt.datetime.now()
    build = config["build"]
    posts_dir = resolve_dir(config, "posts_dir")
    templates_dir = resolve_dir(config, "templates_dir")
    output_dir = resolve_dir(config, "output_dir")
    assets_dir = resolve_dir(config, "assets_dir")
    workers = resolve_workers(build.get("workers"))

    check_inputs(posts_dir, templates_dir)

    logger.info("Building site from %s", posts_dir)
    posts = assign_routes(load_posts(posts_dir, markdown_renderer, workers, generated), config["routing"])
    logger.info("Loaded %d post(s), routing: %s", len(posts), config["routing"]["type"])

    protected = [posts_dir, templates_dir]
    if config.get("_path"):
        protected.append(Path(config["_path"]))
    try:
        clean_output_dir(output_dir, config_root(config), protected)
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise BuildError(f"Could not prepare output directory {output_dir}: {exc}") from exc

    context = site_context(config, generated)
    renderer = PageRenderer(templates_dir, context, template_renderer)
    try:
        build_index(renderer, output_dir, posts, build["index_limit"])
        build_post_listing(renderer, output_dir, posts)
    except (RenderError, OSError) as exc:
        raise BuildError(f"Could not render required page: {exc}") from exc

    gists_built = build_gists(renderer, output_dir, context["gists"])
    failures = build_articles(renderer, output_dir, posts, workers)
    articles = len(posts) - len(failures) if renderer.has_template("article") else 0

    try:
        build_manifest(output_dir, posts, generated)
    except (OSError, TypeError, ValueError) as exc:
        warn("Could not write build manifest: %s", exc)

    try:
        build_sitemap(output_dir, posts, config["site"]["base_url"], gists_built)
    except (OSError, ValueError) as exc:
        warn("Could not write sitemap: %s", exc)

    if assets_dir is not None and assets_dir.is_dir():
        try:
            copy_static(assets_dir, output_dir / ASSETS_DIR)
            logger.debug("Copied assets from %s", assets_dir)
        except OSError as exc:
            warn("Could not copy assets from %s: %s", assets_dir, exc)
    else:
        logger.debug("No assets directory, nothing to copy")

    report = None
    try:
        report = build_report(output_dir)
        log_report(report)
    except OSError as exc:
        warn("Could not compute build report: %s", exc)

    return {
        "posts": posts,
        "articles": articles,
        "failures": failures,
        "gists": gists_built,
        "report": report,
        "output_dir": output_dir,
        "elapsed": time.perf_counter() - start,
    }
