from __future__ import annotations

import datetime as dt
import json

from blogsmith.pages import build_manifest, render_sitemap
from blogsmith.report import build_report
from blogsmith.utils import format_size

POSTS = [
    {"title": "B & C", "url": "/article/abcde.html", "date": dt.datetime(2024, 3, 1, 8, 0)},
    {"title": "A", "url": "/article/12345.html", "date": dt.datetime(2024, 1, 1)},
]


def test_sitemap_lists_pages_and_posts():
    xml = render_sitemap(POSTS, "https://example.com/")
    assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert "<loc>https://example.com/</loc>" in xml
    assert "<loc>https://example.com/post.html</loc>" in xml
    assert "gists.html" not in xml
    assert "<loc>https://example.com/article/abcde.html</loc>\n<lastmod>2024-03-01</lastmod>" in xml
    assert xml.count("<url>") == 4
    assert xml.count("<changefreq>monthly</changefreq>") == 2


def test_sitemap_includes_gists_and_escapes_urls():
    posts = [{"url": "/article/a&b.html", "date": dt.datetime(2024, 1, 1)}]
    xml = render_sitemap(posts, "https://example.com", include_gists=True)
    assert "<loc>https://example.com/gists.html</loc>" in xml
    assert "a&amp;b.html" in xml


def test_manifest_serializes_dates(tmp_path):
    post = {
        "title": "A",
        "categories": "uncategorized",
        "date": dt.datetime(2024, 1, 1, 10, 30, 15, 999),
        "tags": ["x"],
        "content": "<p>a</p>",
        "excerpt": "a…",
        "cover": None,
        "id": "0cc17",
        "file_name": "0cc17.html",
        "url": "/article/0cc17.html",
        "digest": "0cc175b9c0f1b6a831c399e269772661",
        "source": "a.md",
    }
    path = build_manifest(tmp_path, [post], dt.datetime(2024, 2, 2))
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["generated"] == "2024-02-02T00:00:00"
    assert data["posts"][0]["date"] == "2024-01-01T10:30:15"
    assert set(data["posts"][0]) == {
        "title", "categories", "date", "tags", "content", "excerpt", "cover", "id", "file_name", "url"
    }


def test_build_report(tmp_path):
    (tmp_path / "article").mkdir()
    (tmp_path / "index.html").write_bytes(b"x" * 10)
    (tmp_path / "article" / "1.html").write_bytes(b"y" * 2048)
    report = build_report(tmp_path)
    assert report == {
        "count": 2,
        "total_bytes": 2058,
        "files": [("article/1.html", 2048), ("index.html", 10)],
    }


def test_format_size():
    assert format_size(512) == "512 B"
    assert format_size(2048) == "2.0 KiB"
    assert format_size(3 * 1024 * 1024) == "3.0 MiB"
