# shortly

A small URL shortening web service built on Flask. Users register and log
in to receive a JWT, create short links (random or custom codes, optional
expiry, click limit, password and tags), list and delete their links, and
see click statistics broken down by day, referrer, country, browser, device
and operating system. Data is kept in SQLite. Redirects are served from a
Redis cache when one is reachable; the server keeps running without it.

## Running

    pip install .
    shortly

The command takes no options besides `--help`. It opens the database,
creates any missing tables and indexes, tries to connect to Redis, and then
serves on all interfaces at the configured port.

## Configuration

Settings come from environment variables (`shortly.config.load()`):

| Variable              | Default                   |
|-----------------------|---------------------------|
| `PORT`                | `8080`                    |
| `BASE_URL`            | `http://localhost:8080`   |
| `DATABASE_URL`        | `sqlite:///shortly.db`    |
| `REDIS_URL`           | `redis://localhost:6379/0`|
| `JWT_SECRET`          | `secret`                  |
| `SHORT_CODE_LENGTH`   | `7`                       |
| `DEFAULT_EXPIRY_DAYS` | `30`                      |
| `RATE_LIMIT_RPM`      | `60`                      |

Empty variables and integer settings that cannot be parsed fall back to
their defaults. `DATABASE_URL` must be a `sqlite://` URL:
`sqlite:///shortly.db` is a relative path, `sqlite:////var/lib/shortly.db`
an absolute one, and `sqlite://` alone an in-memory database. `BASE_URL` is
used to build the `short_url` of each link.

## HTTP API

Public:

- `GET /health`: `{"status":"ok"}`
- `GET /{code}`: 301 redirect to the original URL; the click is recorded in
  the background. Unknown, disabled or expired links and links past their
  click limit answer 404 with the reason.
- `POST /{code}/unlock` with `{"password": ...}`: returns
  `{"url": ...}` for an active link; 403 on a wrong password for a
  password-protected link.

Authentication (limited to 20 requests per minute per client address,
429 beyond that):

- `POST /api/auth/register` with `{"username", "email", "password"}`: the
  username must be 3–50 bytes, the e-mail must have one `@` and a dot in
  its domain, the password at least 6 bytes. Answers 201.
- `POST /api/auth/login` with `{"email", "password"}`

Both return `{"token": ..., "user": {...}}`. The token is valid for 24
hours; send it on protected requests as `Authorization: Bearer token`.

Protected:

- `POST /api/links` with `{"url", "title", "custom_code", "expires_in",
  "max_clicks", "password", "tags"}`: `url` must be an `http://` or
  `https://` URL with a host; custom codes are 3–20 letters, digits,
  hyphens or underscores; `expires_in` is in days.
- `POST /api/links/bulk` with `{"urls": [...]}` of up to 50 such objects:
  returns `{"links": [...]}` plus `"errors"` (index, url, error) for the
  ones that failed.
- `GET /api/links?page=1&per_page=20`: newest first, `per_page` up to 100.
- `DELETE /api/links/{id}`
- `GET /api/links/{id}/stats?days=30`: `days` from 1 to 365 for the
  per-day series.

Errors come back as `{"error": "..."}` with a fitting status code.
Browser requests from `http://localhost:*` and `https://*` origins get CORS
headers, credentials allowed. The client address is taken from
`True-Client-IP`, `X-Real-IP` or `X-Forwarded-For` when present.

## Library use

```python
from shortly.shortcode import generate_short_code, is_valid_custom_code
from shortly.useragent import parse_user_agent
from shortly.validate import is_valid_url, is_valid_email

code = generate_short_code(7)
is_valid_custom_code("my-link")            # True
parse_user_agent("Mozilla/5.0 (Windows NT 10.0) Chrome/120.0")
# UserAgentInfo(device='desktop', browser='Chrome', os='Windows')
is_valid_url("https://example.com")        # True
is_valid_email("user@example.com")         # True
```

To embed the service:

```python
from shortly.app import create_app
from shortly.config import load
from shortly.database import connect, run_migrations

cfg = load()
db = connect(cfg.database_url)
run_migrations(db)
app = create_app(cfg, db, None)   # or a shortly.cache.RedisCache
```

The services (`shortly.auth.AuthService`, `shortly.links.LinkService`,
`shortly.clicks.ClickService`, `shortly.geo.GeoService`) can also be used
directly with a connection from `shortly.database.connect`.

## What it does not do

- Only SQLite is supported as storage; other database URLs are refused.
- There is no QR code endpoint.
- The server does not locate clicks: `ClickService` can use a `GeoService`
  for country and city, but the app built by `create_app` has none, so
  country statistics show `direct`.
- `RATE_LIMIT_RPM` and `DEFAULT_EXPIRY_DAYS` are read but not applied:
  the auth limit is fixed at 20 per minute, and links created without
  `expires_in` never expire.
- `GET /{code}` does not ask for a link's password; only `/{code}/unlock`
  checks it.