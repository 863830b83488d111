import uuid

import pytest
from werkzeug.test import Client as TestClient

from tubely.app import ApiConfig, create_app, handler_reset, handler_video_get, load_config, main
from tubely.database import Client, CreateUserParams, CreateVideoParams


def _full_env(tmp_path):
    return {
        "DB_PATH": str(tmp_path / "env.db"),
        "JWT_SECRET": "secret",
        "PLATFORM": "dev",
        "FILEPATH_ROOT": str(tmp_path / "site"),
        "ASSETS_ROOT": str(tmp_path / "assets"),
        "S3_BUCKET": "bucket",
        "S3_REGION": "region",
        "S3_CF_DISTRO": "distro",
        "PORT": "8091",
    }


@pytest.fixture
def config(tmp_path):
    site = tmp_path / "site"
    site.mkdir()
    (site / "index.html").write_text("<h1>home</h1>")
    (site / "docs").mkdir()
    (site / "docs" / "readme.txt").write_text("hello")
    assets = tmp_path / "assets"
    assets.mkdir()
    (assets / "thumb.png").write_bytes(b"\x89PNG")
    db = Client(tmp_path / "app.db")
    cfg = ApiConfig(
        db=db,
        jwt_secret="secret",
        platform="dev",
        filepath_root=str(site),
        assets_root=str(assets),
        s3_bucket="bucket",
        s3_region="region",
        s3_cf_distribution="distro",
        port="8091",
    )
    yield cfg
    db.close()


@pytest.fixture
def video(config):
    password = "password"
    user = config.db.create_user(CreateUserParams(email="user@example.com", password=password))
    return config.db.create_video(
        CreateVideoParams(title="My clip", description="A test video", user_id=user.id)
    )


def test_load_config_reads_all_settings(tmp_path):
    cfg = load_config(_full_env(tmp_path))
    try:
        assert cfg.platform == "dev"
        assert cfg.port == "8091"
        assert cfg.s3_cf_distribution == "distro"
        assert cfg.assets_root == str(tmp_path / "assets")
        assert cfg.db.get_users() == []
    finally:
        cfg.db.close()


def test_load_config_requires_db_path(tmp_path):
    env = _full_env(tmp_path)
    del env["DB_PATH"]
    with pytest.raises(RuntimeError, match="DB_URL must be set"):
        load_config(env)


@pytest.mark.parametrize(
    "variable", ["JWT_SECRET", "PLATFORM", "ASSETS_ROOT", "S3_CF_DISTRO", "PORT"]
)
def test_load_config_requires_each_setting(tmp_path, variable):
    env = _full_env(tmp_path)
    env[variable] = ""
    with pytest.raises(RuntimeError, match=f"{variable} environment variable is not set"):
        load_config(env)


def test_reset_forbidden_outside_dev(config, video):
    config.platform = "prod"
    response = handler_reset(config, None)
    assert response.status_code == 403
    assert response.get_data(as_text=True) == "Reset is only allowed in dev environment."
    assert config.db.get_video(video.id) is not None


def test_reset_in_dev_clears_database(config, video):
    response = handler_reset(config, None)
    assert response.status_code == 200
    assert response.get_data(as_text=True) == "Database reset to initial state"
    assert config.db.get_video(video.id) is None
    assert config.db.get_users() == []


def test_handler_video_get_returns_video(config, video):
    response = handler_video_get(config, None, str(video.id))
    assert response.status_code == 200
    body = response.get_json()
    assert body["id"] == str(video.id)
    assert body["title"] == "My clip"
    assert body["thumbnail_url"] is None


def test_handler_video_get_invalid_id(config):
    response = handler_video_get(config, None, "not-a-uuid")
    assert response.status_code == 400
    assert response.get_json() == {"error": "Invalid video ID"}


def test_handler_video_get_unknown_id(config):
    response = handler_video_get(config, None, str(uuid.uuid4()))
    assert response.status_code == 404
    assert response.get_json() == {"error": "Couldn't get video"}


def test_route_get_video(config, video):
    client = TestClient(create_app(config))
    response = client.get(f"/api/videos/{video.id}")
    assert response.status_code == 200
    assert response.headers["Content-Type"] == "application/json"
    assert response.get_json()["description"] == "A test video"


def test_route_wrong_method_rejected(config, video):
    client = TestClient(create_app(config))
    response = client.post(f"/api/videos/{video.id}")
    assert response.status_code == 405


def test_route_reset_via_post(config, video):
    client = TestClient(create_app(config))
    response = client.post("/admin/reset")
    assert response.status_code == 200
    assert config.db.get_video(video.id) is None


def test_unknown_route_not_found(config):
    client = TestClient(create_app(config))
    assert client.get("/api/nothing").status_code == 404


def test_assets_served_without_cache(config):
    client = TestClient(create_app(config))
    response = client.get("/assets/thumb.png")
    assert response.status_code == 200
    assert response.data == b"\x89PNG"
    assert response.headers["Cache-Control"] == "no-store"


def test_missing_asset_still_no_cache(config):
    client = TestClient(create_app(config))
    response = client.get("/assets/missing.png")
    assert response.status_code == 404
    assert response.headers["Cache-Control"] == "no-store"


def test_app_root_serves_index(config):
    client = TestClient(create_app(config))
    response = client.get("/app/")
    assert response.status_code == 200
    assert response.data == b"<h1>home</h1>"
    assert "no-store" not in response.headers.get("Cache-Control", "")


def test_app_directory_redirects_then_lists(config):
    client = TestClient(create_app(config))
    redirect = client.get("/app/docs")
    assert redirect.status_code == 301
    assert redirect.headers["Location"].endswith("/app/docs/")
    listing = client.get("/app/docs/")
    assert listing.status_code == 200
    assert '<a href="readme.txt">readme.txt</a>' in listing.get_data(as_text=True)


def test_app_file_served(config):
    client = TestClient(create_app(config))
    response = client.get("/app/docs/readme.txt")
    assert response.status_code == 200
    assert response.data == b"hello"


def test_app_path_traversal_rejected(config):
    client = TestClient(create_app(config))
    assert client.get("/app/../app.db").status_code == 404


def test_main_fails_without_configuration(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DB_PATH", raising=False)
    assert main([]) == 1