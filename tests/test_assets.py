import base64
import os

import pytest

from tubely.assets import (
    check_asset_media_type,
    ensure_assets_dir,
    get_asset_disk_path,
    get_asset_path,
    get_asset_url,
    media_type_to_ext,
)

ALLOWED = {"image/jpeg", "image/png"}


@pytest.mark.parametrize(
    "content_type, expected",
    [("image/png", ".png"), ("video/mp4", ".mp4"), ("text", ".bin"), ("a/b/c", ".bin")],
)
def test_media_type_to_ext(content_type, expected):
    assert media_type_to_ext(content_type) == expected


def test_get_asset_path_is_random_urlsafe_key():
    first = get_asset_path("image/png")
    second = get_asset_path("image/png")
    assert first != second
    stem, ext = os.path.splitext(first)
    assert ext == ".png"
    assert "=" not in stem and "+" not in stem and "/" not in stem
    assert len(base64.urlsafe_b64decode(stem + "=" * (-len(stem) % 4))) == 32


def test_get_asset_path_unknown_type_uses_bin():
    assert get_asset_path("weird").endswith(".bin")


def test_ensure_assets_dir_creates_and_keeps(tmp_path):
    root = tmp_path / "assets"
    ensure_assets_dir(root)
    assert root.is_dir()
    (root / "keep.txt").write_text("x")
    ensure_assets_dir(root)
    assert (root / "keep.txt").read_text() == "x"


def test_disk_path_and_url():
    disk = get_asset_disk_path("assets", "abc.png")
    assert disk == os.path.join("assets", "abc.png")
    assert get_asset_url("8091", "assets/abc.png") == "http://localhost:8091/assets/abc.png"


@pytest.mark.parametrize(
    "value", ["image/png", "IMAGE/PNG", "image/jpeg; q=1", 'image/png; name="a;b"', "image/png;"]
)
def test_check_allowed_media_types(value):
    assert check_asset_media_type(value, ALLOWED) in ALLOWED


def test_check_returns_lowercased_type():
    assert check_asset_media_type(" Image/JPEG ", ALLOWED) == "image/jpeg"


def test_check_rejects_disallowed_type():
    with pytest.raises(ValueError, match="mime type not allowed"):
        check_asset_media_type("image/gif", ALLOWED)


@pytest.mark.parametrize(
    "value", ["", "image/", "image png", "image/png; charset", "image/png; a=1; a=2"]
)
def test_check_rejects_malformed(value):
    with pytest.raises(ValueError):
        check_asset_media_type(value, ALLOWED)