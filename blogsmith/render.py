from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Callable, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .utils import format_size

logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".html"


class RenderError(RuntimeError):
    def __init__(self, template: str, message: str) -> None:
        super().__init__(f"template {template!r}: {message}")
        self.template = template


class TemplateMissing(RenderError):
    pass


def template_path(templates_dir: Path, name: str) -> Path:
    return templates_dir / f"{name}{TEMPLATE_SUFFIX}"


class JinjaRenderer:
    """Render ``<name>.html`` templates from a directory with Jinja2."""

    def __init__(self, templates_dir: Path) -> None:
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def __call__(self, name: str, context: dict) -> str:
        return self.env.get_template(f"{name}{TEMPLATE_SUFFIX}").render(**context)


def write_text(path: Path, text: str) -> int:
    path.parent.mkdir(parents=True, exist_ok=True)
    data = text.encode("utf-8")
    path.write_bytes(data)
    return len(data)


def copy_static(static_dir: Path, dest: Path) -> None:
    if dest.exists():
        shutil.rmtree(dest)
    shutil.copytree(static_dir, dest)


class PageRenderer:
    def __init__(
        self,
        templates_dir: Path,
        context: dict,
        render_template: Optional[Callable[[str, dict], str]] = None,
    ) -> None:
        self.templates_dir = templates_dir
        self.context = context
        self.render_template = render_template or JinjaRenderer(templates_dir)

    def has_template(self, name: str) -> bool:
        return template_path(self.templates_dir, name).is_file()

    def render(self, template_name: str, page_data: dict, output_path: Path) -> int:
        # page_data wins over the site context; returns bytes written
        if not self.has_template(template_name):
            raise TemplateMissing(
                template_name, f"not found at {template_path(self.templates_dir, template_name)}"
            )
        context = {**self.context, **page_data}
        try:
            text = self.render_template(template_name, context)
        except Exception as exc:
            raise RenderError(template_name, f"{type(exc).__name__}: {exc}") from exc
        size = write_text(output_path, text)
        logger.debug("Wrote %s (%s)", output_path, format_size(size))
        return size
