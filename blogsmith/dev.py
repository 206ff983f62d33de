from __future__ import annotations

import functools
import logging
import mimetypes
import os
import threading
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Callable, Iterable, Optional
from urllib.parse import unquote, urlsplit

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .builder import build_site
from .config import ConfigError, resolve_dir
from .utils import BuildError

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 4000
IGNORED_PARTS = {".git", "node_modules", "__pycache__"}
REBUILD_EVENTS = {"created", "modified", "deleted", "moved"}
TEXT_TYPES = {"application/javascript", "application/json", "application/xml", "image/svg+xml"}


class RebuildQueue:
    """Run rebuilds one at a time; triggers during a build collapse into one more."""

    def __init__(self, rebuild: Callable[[], None]) -> None:
        self.rebuild = rebuild
        self.lock = threading.Lock()
        self.running = False
        self.pending = False
        self.thread: Optional[threading.Thread] = None

    def trigger(self) -> None:
        with self.lock:
            if self.running:
                self.pending = True
                return
            self.running = True
            self.thread = threading.Thread(target=self._run, name="blogsmith-rebuild", daemon=True)
            self.thread.start()

    def _run(self) -> None:
        while True:
            try:
                self.rebuild()
            except Exception:
                logger.exception("Rebuild crashed")
            with self.lock:
                if not self.pending:
                    self.running = False
                    return
                self.pending = False

    def wait(self, timeout: Optional[float] = None) -> None:
        thread = self.thread
        if thread is not None:
            thread.join(timeout)


class ChangeHandler(FileSystemEventHandler):
    def __init__(
        self,
        queue: RebuildQueue,
        ignored_dirs: Iterable[Path] = (),
        only: Optional[Iterable[Path]] = None,
    ) -> None:
        super().__init__()
        self.queue = queue
        self.ignored_dirs = [Path(path).resolve() for path in ignored_dirs]
        self.only = {Path(path).resolve() for path in only} if only is not None else None

    def should_rebuild(self, path: str) -> bool:
        target = Path(os.fsdecode(path)).resolve()
        if IGNORED_PARTS.intersection(target.parts):
            return False
        if self.only is not None:
            return target in self.only
        return not any(target == ignored or target.is_relative_to(ignored) for ignored in self.ignored_dirs)

    def on_any_event(self, event) -> None:
        if event.is_directory or event.event_type not in REBUILD_EVENTS:
            return
        paths = [event.src_path, getattr(event, "dest_path", "")]
        changed = [path for path in paths if path and self.should_rebuild(path)]
        if not changed:
            return
        logger.info("Change detected: %s, rebuilding", os.fsdecode(changed[0]))
        self.queue.trigger()


class DevRequestHandler(BaseHTTPRequestHandler):
    server_version = "blogsmith-dev"

    def __init__(self, *args, directory: Path, **kwargs) -> None:
        self.root = Path(directory).resolve()
        super().__init__(*args, **kwargs)

    def resolve_target(self) -> Optional[Path]:
        request_path = unquote(urlsplit(self.path).path)
        relative = request_path.lstrip("/") or "index.html"
        try:
            target = (self.root / relative).resolve()
        except ValueError:
            return None
        if target != self.root and not target.is_relative_to(self.root):
            return None
        if target.is_dir():
            target = target / "index.html"
        return target

    def read_file(self, target: Path) -> bytes:
        return target.read_bytes()

    def content_type(self, target: Path) -> str:
        content_type = mimetypes.guess_type(target.name)[0] or "text/plain"
        if content_type.startswith("text/") or content_type in TEXT_TYPES:
            content_type += "; charset=utf-8"
        return content_type

    def send_file(self, head: bool = False) -> None:
        try:
            target = self.resolve_target()
            if target is None or not target.is_file():
                logger.info("404 %s", self.path)
                self.send_error(HTTPStatus.NOT_FOUND)
                return
            data = self.read_file(target)
        except OSError as exc:
            logger.error("500 %s: %s", self.path, exc)
            self.send_error(HTTPStatus.INTERNAL_SERVER_ERROR)
            return
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", self.content_type(target))
        self.send_header("Content-Length", str(len(data)))
        self.send_header("Cache-Control", "no-store")
        self.end_headers()
        if not head:
            self.wfile.write(data)

    def do_GET(self) -> None:
        self.send_file()

    def do_HEAD(self) -> None:
        self.send_file(head=True)

    def log_message(self, format: str, *args) -> None:
        logger.debug("%s %s", self.address_string(), format % args)


def make_server(output_dir: Path, port: int = DEFAULT_PORT, host: str = DEFAULT_HOST) -> ThreadingHTTPServer:
    handler = functools.partial(DevRequestHandler, directory=output_dir)
    server = ThreadingHTTPServer((host, port), handler)
    server.daemon_threads = True
    return server


def rebuild_once(config: dict) -> bool:
    try:
        result = build_site(config)
    except (BuildError, ConfigError) as exc:
        logger.error("Build failed: %s", exc, exc_info=logger.isEnabledFor(logging.DEBUG))
        return False
    logger.info("Build completed in %.2fs (%d post(s))", result["elapsed"], len(result["posts"]))
    return True


def start_observer(config: dict, queue: RebuildQueue) -> Observer:
    output_dir = resolve_dir(config, "output_dir")
    observer = Observer()
    handler = ChangeHandler(queue, ignored_dirs=[output_dir])
    for key in ("posts_dir", "templates_dir"):
        path = resolve_dir(config, key)
        if path is not None and path.is_dir():
            observer.schedule(handler, str(path), recursive=True)
            logger.info("Watching %s", path)
    config_path = config.get("_path")
    if config_path:
        config_path = Path(config_path)
        observer.schedule(ChangeHandler(queue, only=[config_path]), str(config_path.parent), recursive=False)
        logger.info("Watching %s", config_path)
    observer.start()
    return observer


def watch(config: dict, port: int = DEFAULT_PORT, host: str = DEFAULT_HOST) -> None:
    output_dir = resolve_dir(config, "output_dir")
    rebuild_once(config)
    server = make_server(output_dir, port, host)
    queue = RebuildQueue(functools.partial(rebuild_once, config))
    observer = start_observer(config, queue)
    logger.info("Serving %s at http://%s:%d (Ctrl+C to stop)", output_dir, host, port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Stopping dev server")
    finally:
        observer.stop()
        observer.join()
        server.server_close()
