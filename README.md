# tubely

A small WSGI server that serves a static web front end, uploaded asset
files and video metadata as JSON. Users, refresh tokens and videos are kept
in a SQLite database.

## Installing

```
pip install .
```

To run the test suite as well:

```
pip install ".[test]"
pytest
```

## Configuration

The server reads its settings from the environment. A `.env` file in the
working directory is loaded first when there is one. Every variable below is
required; if one is missing or empty the server logs the problem and exits
with status 1.

| Variable        | Meaning                                                     |
|-----------------|-------------------------------------------------------------|
| `DB_PATH`       | Path of the SQLite database file. It is created if needed.  |
| `JWT_SECRET`    | Required, kept in the configuration; not otherwise used     |
| `PLATFORM`      | Deployment platform. `dev` enables the reset endpoint.      |
| `FILEPATH_ROOT` | Directory served under `/app/`                              |
| `ASSETS_ROOT`   | Directory served under `/assets/`; created if missing       |
| `S3_BUCKET`     | Required, kept in the configuration; not otherwise used     |
| `S3_REGION`     | Required, kept in the configuration; not otherwise used     |
| `S3_CF_DISTRO`  | Required, kept in the configuration; not otherwise used     |
| `PORT`          | Port to listen on                                           |

An example `.env`:

```
DB_PATH=tubely.db
JWT_SECRET=secret
PLATFORM=dev
FILEPATH_ROOT=./app
ASSETS_ROOT=./assets
S3_BUCKET=placeholder
S3_REGION=placeholder
S3_CF_DISTRO=placeholder
PORT=8091
```

## Running

```
tubely
```

The command takes no options besides `--help`. It creates the assets
directory if it does not exist, logs the front-end address (for example
`http://localhost:8091/app/`) and serves on all interfaces until
interrupted.

## Endpoints

- `GET /app/...` serves files from `FILEPATH_ROOT`. A directory is answered
  with its `index.html` if there is one, otherwise with a plain HTML listing;
  a directory path without a trailing slash is redirected to one.
- `GET /assets/...` serves files from `ASSETS_ROOT` the same way. Responses
  carry `Cache-Control: no-store`.
- `GET /api/videos/{videoID}` returns one video as JSON. An ID that is not a
  valid UUID gives 400, an unknown video gives 404.
- `POST /admin/reset` empties the refresh tokens, users and videos tables and
  answers with a short text message. It is allowed only when `PLATFORM` is
  `dev` and answers 403 otherwise.

Error responses are JSON objects of the form `{"error": "<message>"}`.

## Using it as a library

### Storage

`tubely.database.Client` opens (and creates the tables in) a SQLite file.
It can be used as a context manager. Lookups return `None` when nothing
matches.

```python
from tubely.database import Client, CreateUserParams, CreateVideoParams

password = "password"
with Client("tubely.db") as client:
    user = client.create_user(CreateUserParams(email="user@example.com", password=password))
    video = client.create_video(
        CreateVideoParams(title="Intro", description="First video", user_id=user.id)
    )
    video.thumbnail_url = "http://localhost:8091/assets/thumb.png"
    client.update_video(video)
    print([v.to_dict() for v in client.get_videos(user.id)])
```

`Client` has methods for users (`create_user`, `get_user`, `get_users`,
`get_user_by_email`, `get_user_by_refresh_token`, `delete_user`), refresh
tokens (`create_refresh_token`, `get_refresh_token`, `revoke_refresh_token`,
`delete_refresh_token`), videos (`create_video`, `get_video`, `get_videos`,
`update_video`, `delete_video`) and `reset`. Passwords are stored exactly as
given. `User.to_dict` and `Video.to_dict` give the JSON form, with
timestamps in UTC ending in `Z`.

### The application

```python
import os

from tubely.app import create_app, load_config

config = load_config(os.environ)   # raises RuntimeError if a setting is missing
app = create_app(config)           # a WSGI application
```

### Responses and assets

`tubely.responses` builds werkzeug responses: `respond_with_json(code,
payload)` and `respond_with_error(code, msg, err)`, and
`no_cache_middleware(app)` wraps any WSGI app so its responses carry
`Cache-Control: no-store`.

`tubely.assets` has helpers for naming and placing uploaded files.
`check_asset_media_type` parses a `Content-Type` value and raises
`ValueError` if it is malformed or not among the allowed MIME types.
`get_asset_path` makes a random, URL-safe file name whose extension comes
from the media type (`.bin` when it has no single `/`), and
`get_asset_disk_path`, `get_asset_url` and `ensure_assets_dir` place it.

## What it does not do

The HTTP server exposes only the endpoints listed above. It has no
endpoints for signing up, logging in, refreshing or revoking tokens, and it
neither issues nor checks access tokens. Videos cannot be created, listed,
deleted, or given a thumbnail or video file over HTTP; those operations
exist only as `Client` methods and asset helpers. Nothing is uploaded to
any remote bucket: the `S3_*` settings are only read and kept.