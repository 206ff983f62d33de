from __future__ import annotations

import datetime as dt
from pathlib import Path

import pytest

from blogsmith.config import ConfigError, load_config, parse_config, resolve_dir, site_context, validate_config

VALID = """\
# top-level comments are ignored
stray = outside any section

[site]
title = My Blog
base_url = https://blog.example.com
tagline = a = b

[build]
posts_dir = content/posts
templates_dir = templates
output_dir = public
# output_dir = ignored

[routing]
type = sequential
"""


def test_parse_sections_and_values():
    config = parse_config(VALID)
    assert config["site"] == {
        "title": "My Blog",
        "base_url": "https://blog.example.com",
        "tagline": "a = b",
    }
    assert config["build"]["output_dir"] == "public"
    assert "stray" not in config
    assert config["routing"] == {"type": "sequential"}


def test_list_values_and_label_items():
    config = parse_config(
        "[tech]\n"
        "items = - Python: 5 years\n"
        "items = - Rust\n"
        "\n"
        "[gists]\n"
        "list =\n"
        "- https://gist.example.com/1\n"
        "- Notes: https://gist.example.com/2\n"
    )
    assert config["tech"]["items"] == [{"Python": "5 years"}, "Rust"]
    assert config["gists"]["list"] == ["https://gist.example.com/1", {"Notes": "https://gist.example.com/2"}]


def test_list_item_after_a_scalar_keeps_the_scalar():
    config = parse_config("[tech]\nlangs = Python\n- Go\ntools = Docs: https://docs.example.com\ntools = - git\n")
    assert config["tech"]["langs"] == ["Python", "Go"]
    assert config["tech"]["tools"] == [{"Docs": "https://docs.example.com"}, "git"]


def test_reopened_section_merges():
    config = parse_config("[site]\ntitle = A\n[build]\nposts_dir = p\n[site]\nbase_url = /\n")
    assert config["site"] == {"title": "A", "base_url": "/"}


def test_line_without_assignment_is_an_error():
    with pytest.raises(ConfigError, match=":3:"):
        parse_config("[site]\ntitle = A\njust some words\n", "site.conf")


def test_list_item_without_key_is_an_error():
    with pytest.raises(ConfigError, match="list item"):
        parse_config("[tech]\n- Python\n")


@pytest.mark.parametrize("key", ["posts_dir", "templates_dir", "output_dir"])
def test_missing_build_key_fails(key):
    config = parse_config(VALID)
    config["build"][key] = "  "
    with pytest.raises(ConfigError, match=f"build.{key}"):
        validate_config(config)


def test_missing_base_url_fails():
    config = parse_config(VALID.replace("base_url = https://blog.example.com\n", ""))
    with pytest.raises(ConfigError, match="site.base_url"):
        validate_config(config)


def test_routing_defaults_and_validation():
    config = parse_config(VALID.replace("type = sequential", ""))
    validate_config(config)
    assert config["routing"] == {"type": "md5", "base_path": "/article"}
    assert config["build"]["index_limit"] == 5

    config = parse_config(VALID.replace("type = sequential", "type = random"))
    with pytest.raises(ConfigError, match="routing.type"):
        validate_config(config)


@pytest.mark.parametrize("value", ["0", "-3", "many"])
def test_invalid_index_limit(value):
    config = parse_config(VALID)
    config["build"]["index_limit"] = value
    with pytest.raises(ConfigError, match="index_limit"):
        validate_config(config)


def test_load_config_missing_file(tmp_path: Path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "nope.conf")


def test_load_config_resolves_dirs_against_config_location(tmp_path: Path):
    path = tmp_path / "site.conf"
    path.write_text(VALID, encoding="utf-8")
    config = load_config(path)
    assert resolve_dir(config, "posts_dir") == tmp_path.resolve() / "content" / "posts"
    assert resolve_dir(config, "assets_dir") is None


def test_site_context():
    config = parse_config(
        VALID
        + "[features]\ncomments = true\nsearch = off\n"
        + "[social]\ngithub = someone\n"
        + "[tech]\nlanguages = - Python: daily\nlanguages = - Go\ntools = - git\n"
    )
    validate_config(config)
    generated = dt.datetime(2024, 5, 1, 12, 0)
    context = site_context(config, generated)
    assert context["site"]["title"] == "My Blog"
    assert context["features"] == {"comments": True, "search": False}
    assert context["social"] == {"github": "someone"}
    assert context["tech"] == [{"Python": "daily"}, "Go", "git"]
    assert context["gists"] == []
    assert context["generated"] is generated
    assert context["format_date"](generated, "%Y-%m-%d") == "2024-05-01"
