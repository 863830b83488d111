"""HTTP application: configuration, routing and request handlers."""

from __future__ import annotations

import argparse
import html
import logging
import os
import sqlite3
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from urllib.parse import quote

from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException, NotFound
from werkzeug.routing import Map, Rule
from werkzeug.security import safe_join
from werkzeug.serving import run_simple
from werkzeug.utils import redirect, send_file
from werkzeug.wrappers import Request, Response

from .assets import ensure_assets_dir
from .database import Client
from .responses import no_cache_middleware, respond_with_error, respond_with_json

logger = logging.getLogger(__name__)

_REQUIRED_SETTINGS = (
    ("jwt_secret", "JWT_SECRET"),
    ("platform", "PLATFORM"),
    ("filepath_root", "FILEPATH_ROOT"),
    ("assets_root", "ASSETS_ROOT"),
    ("s3_bucket", "S3_BUCKET"),
    ("s3_region", "S3_REGION"),
    ("s3_cf_distribution", "S3_CF_DISTRO"),
    ("port", "PORT"),
)


@dataclass
class ApiConfig:
    """Everything the request handlers need to serve the API."""

    db: Client
    jwt_secret: str = field(repr=False)
    platform: str
    filepath_root: str
    assets_root: str
    s3_bucket: str
    s3_region: str
    s3_cf_distribution: str
    port: str


def load_config(environ: Mapping[str, str]) -> ApiConfig:
    """Build the configuration from environment variables.

    Opens the database named by DB_PATH. Raises RuntimeError when a
    setting is missing or the database cannot be opened.
    """
    path_to_db = environ.get("DB_PATH", "")
    if not path_to_db:
        raise RuntimeError("DB_URL must be set")

    try:
        db = Client(path_to_db)
    except sqlite3.Error as exc:
        raise RuntimeError(f"Couldn't connect to database: {exc}") from exc

    settings: dict[str, str] = {}
    for attribute, variable in _REQUIRED_SETTINGS:
        value = environ.get(variable, "")
        if not value:
            db.close()
            raise RuntimeError(f"{variable} environment variable is not set")
        settings[attribute] = value

    return ApiConfig(db=db, **settings)


def handler_reset(config: ApiConfig, request: Request) -> Response:
    """Empty the database; only allowed on the dev platform."""
    if config.platform != "dev":
        return Response(
            "Reset is only allowed in dev environment.",
            status=403,
            mimetype="text/plain",
        )
    try:
        config.db.reset()
    except sqlite3.Error as exc:
        return respond_with_error(500, "Couldn't reset database", exc)
    return Response("Database reset to initial state", status=200, mimetype="text/plain")


def handler_video_get(config: ApiConfig, request: Request, video_id: str) -> Response:
    """Return a single video's metadata as JSON."""
    try:
        parsed_id = uuid.UUID(video_id)
    except ValueError as exc:
        return respond_with_error(400, "Invalid video ID", exc)

    try:
        video = config.db.get_video(parsed_id)
    except sqlite3.Error as exc:
        return respond_with_error(404, "Couldn't get video", exc)
    if video is None:
        return respond_with_error(404, "Couldn't get video")

    return respond_with_json(200, video)


def _directory_listing(directory: str) -> Response:
    entries = sorted(os.scandir(directory), key=lambda entry: entry.name)
    lines = [
        "<!doctype html>",
        '<meta name="viewport" content="width=device-width">',
        "<pre>",
    ]
    for entry in entries:
        name = entry.name + ("/" if entry.is_dir() else "")
        lines.append(f'<a href="{html.escape(quote(name))}">{html.escape(name)}</a>')
    lines.append("</pre>")
    return Response("\n".join(lines) + "\n", mimetype="text/html")


def _serve_path(root: str, subpath: str, request: Request) -> Response:
    target = safe_join(root, subpath) if subpath else root
    if target is None:
        raise NotFound()
    if os.path.isdir(target):
        if subpath and not subpath.endswith("/"):
            return redirect(request.path + "/", 301)
        index = os.path.join(target, "index.html")
        if os.path.isfile(index):
            return send_file(index, request.environ)
        return _directory_listing(target)
    if not os.path.isfile(target):
        raise NotFound()
    return send_file(target, request.environ)


def _static_app(root, prefix: str):
    root = os.fspath(root)

    def serve(environ, start_response):
        request = Request(environ)
        try:
            response = _serve_path(root, request.path[len(prefix):], request)
        except HTTPException as exc:
            response = exc
        return response(environ, start_response)

    return serve


def create_app(config: ApiConfig):
    """Return the WSGI application serving files and the API."""
    url_map = Map(
        [
            Rule("/api/videos/<video_id>", endpoint="video_get", methods=["GET"]),
            Rule("/admin/reset", endpoint="reset", methods=["POST"]),
        ]
    )
    handlers = {
        "video_get": handler_video_get,
        "reset": handler_reset,
    }

    app_files = _static_app(config.filepath_root, "/app")
    asset_files = no_cache_middleware(_static_app(config.assets_root, "/assets"))

    def api(environ, start_response):
        request = Request(environ)
        adapter = url_map.bind_to_environ(environ)
        try:
            endpoint, arguments = adapter.match()
            response = handlers[endpoint](config, request, **arguments)
        except HTTPException as exc:
            response = exc
        return response(environ, start_response)

    def application(environ, start_response):
        path = environ.get("PATH_INFO", "") or "/"
        if path in ("/app", "/assets"):
            return redirect(path + "/", 301)(environ, start_response)
        if path.startswith("/app/"):
            return app_files(environ, start_response)
        if path.startswith("/assets/"):
            return asset_files(environ, start_response)
        return api(environ, start_response)

    return application


def main(argv=None) -> int:
    """Load the configuration and serve until interrupted."""
    parser = argparse.ArgumentParser(
        prog="tubely", description="Serve the video metadata API and static files."
    )
    parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")

    load_dotenv(".env")
    try:
        config = load_config(os.environ)
    except RuntimeError as exc:
        logger.critical("%s", exc)
        return 1

    try:
        ensure_assets_dir(config.assets_root)
    except OSError as exc:
        logger.critical("Couldn't create assets directory: %s", exc)
        config.db.close()
        return 1

    try:
        port = int(config.port)
    except ValueError:
        logger.critical("listen tcp: invalid port %r", config.port)
        config.db.close()
        return 1

    logger.info("Serving on: http://localhost:%s/app/", config.port)
    try:
        run_simple("0.0.0.0", port, create_app(config), threaded=True)
    except OSError as exc:
        logger.critical("%s", exc)
        return 1
    finally:
        config.db.close()
    return 0