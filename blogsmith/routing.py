from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

ID_LENGTH = 5


def content_id(post: dict) -> str:
    return post["digest"][:ID_LENGTH]


def post_url(base_path: str, file_name: str) -> str:
    return f"{base_path.rstrip('/')}/{file_name}"


def assign_routes(posts: list[dict], routing: dict) -> list[dict]:
    # posts must already be in listing order
    mode = routing.get("type", "md5")
    base_path = routing.get("base_path", "/article")
    routed = []
    seen: dict[str, str] = {}
    for rank, post in enumerate(posts):
        if mode == "sequential":
            post_id = None
            file_name = f"{rank + 1}.html"
        else:
            post_id = content_id(post)
            file_name = f"{post_id}.html"
            if file_name in seen:
                logger.warning(
                    "Identifier collision: %s and %s both map to %s", seen[file_name], post["source"], file_name
                )
            seen.setdefault(file_name, post["source"])
        routed.append({**post, "id": post_id, "file_name": file_name, "url": post_url(base_path, file_name)})
    return routed
