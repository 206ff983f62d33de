from __future__ import annotations

import logging
from pathlib import Path

import pytest

from blogsmith.config import load_config

TEMPLATES = {
    "index": (
        "<h1>{{ site.title }}</h1>\n"
        "{% for post in posts %}<a href=\"{{ post.url }}\">{{ post.title }}</a>\n{% endfor %}"
    ),
    "post": "{% for post in posts %}{{ post.file_name }} {{ post.title }} {{ format_date(post.date, '%Y-%m-%d') }}\n{% endfor %}",
    "article": "<h1>{{ post.title }}</h1>\n{{ post.content|safe }}",
}


class Site:
    """A throwaway site tree: config file, posts, templates."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.posts_dir = root / "posts"
        self.templates_dir = root / "templates"
        self.output_dir = root / "dist"
        self.config_path = root / "config.conf"
        self.posts_dir.mkdir()
        self.templates_dir.mkdir()
        for name, text in TEMPLATES.items():
            self.add_template(name, text)

    def add_template(self, name: str, text: str) -> Path:
        path = self.templates_dir / f"{name}.html"
        path.write_text(text, encoding="utf-8")
        return path

    def add_post(self, name: str, body: str, **meta) -> Path:
        lines = ["---"]
        for key, value in meta.items():
            lines.append(f"{key}: {value}")
        lines.append("---")
        path = self.posts_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(lines) + "\n" + body, encoding="utf-8")
        return path

    def write_config(self, routing: str = "md5", build_extra: str = "", extra: str = "") -> Path:
        text = (
            "[site]\n"
            "title = Test Blog\n"
            "base_url = https://example.com\n"
            "\n"
            "[build]\n"
            "posts_dir = posts\n"
            "templates_dir = templates\n"
            "output_dir = dist\n"
            f"{build_extra}\n"
            "\n"
            "[routing]\n"
            f"type = {routing}\n"
            "base_path = /article\n"
            f"{extra}\n"
        )
        self.config_path.write_text(text, encoding="utf-8")
        return self.config_path

    def config(self, **kwargs) -> dict:
        return load_config(self.write_config(**kwargs))


@pytest.fixture
def site(tmp_path: Path) -> Site:
    return Site(tmp_path)


@pytest.fixture(autouse=True)
def reset_blogsmith_logger():
    yield
    logger = logging.getLogger("blogsmith")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
