"""Helpers for storing uploaded asset files."""

from __future__ import annotations

import base64
import os
import re
import secrets
from collections.abc import Container

_TSPECIALS = set('()<>@,;:\\"/[]?=')
_PARAM = re.compile(r'\s*;\s*([^\s;=]+)\s*=\s*("(?:[^"\\]|\\.)*"|[^\s;"]+)\s*')


def ensure_assets_dir(assets_root) -> None:
    """Create the assets directory if it does not exist."""
    if not os.path.exists(assets_root):
        os.mkdir(assets_root, 0o755)


def media_type_to_ext(content_type: str) -> str:
    """Map a 'type/subtype' media type to a file extension."""
    parts = content_type.split("/")
    if len(parts) != 2:
        return ".bin"
    return "." + parts[1]


def get_asset_path(media_type: str) -> str:
    """Return a random file name with an extension for the media type."""
    key = secrets.token_bytes(32)
    encoded = base64.urlsafe_b64encode(key).decode("ascii").rstrip("=")
    return f"{encoded}{media_type_to_ext(media_type)}"


def get_asset_disk_path(assets_root, asset_path: str) -> str:
    """Return where an asset is stored on disk."""
    return os.path.join(assets_root, asset_path)


def get_asset_url(port, asset_disk_path: str) -> str:
    """Return the URL an asset is served from."""
    return f"http://localhost:{port}/{asset_disk_path}"


def _is_token(text: str) -> bool:
    return bool(text) and all(
        c.isascii() and 32 < ord(c) < 127 and c not in _TSPECIALS for c in text
    )


def _parse_media_type(value: str) -> tuple[str, dict[str, str]]:
    base, _, _ = value.partition(";")
    media_type = base.strip().lower()
    main, slash, sub = media_type.partition("/")
    if not _is_token(main):
        raise ValueError("mime: no media type")
    if slash and not _is_token(sub):
        raise ValueError("mime: expected token after slash")

    params: dict[str, str] = {}
    rest = value[len(base):]
    while rest.strip():
        if rest.strip() == ";":
            break
        match = _PARAM.match(rest)
        if match is None:
            raise ValueError("mime: invalid media parameter")
        key = match.group(1).lower()
        raw = match.group(2)
        if not _is_token(key):
            raise ValueError("mime: invalid media parameter")
        if raw.startswith('"'):
            param_value = re.sub(r"\\(.)", r"\1", raw[1:-1])
        elif _is_token(raw):
            param_value = raw
        else:
            raise ValueError("mime: invalid media parameter")
        if key in params:
            raise ValueError("mime: duplicate parameter name")
        params[key] = param_value
        rest = rest[match.end():]
    return media_type, params


def check_asset_media_type(media_type: str, allowed_types: Container[str]) -> str:
    """Return the parsed media type, raising ValueError if invalid or not allowed."""
    mime_type, _ = _parse_media_type(media_type)
    if mime_type not in allowed_types:
        raise ValueError("mime type not allowed")
    return mime_type