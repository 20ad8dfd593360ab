# imgtools

The server side of an online image toolbox. It serves the pre-built desktop
and mobile front ends from memory, keeps every visiting IPv4 address on a
short leash, hands out checkable task ids, counts downloads of processed
results and records per-tool usage figures in an SQLite database.

## Running the server

Put a `config/config.yml` under the project root and run:

```
imgtools
```

or point at another root with `imgtools --base /path/to/root`. The command
exits with status 1 when the settings file is missing or the server cannot
start, and with status 15 after a clean shutdown.

The settings file is YAML; keys are looked up case-insensitively. The keys
the server reads are:

- `HttpServer.Port` – listen address such as `:8080` (default `:8080`).
- `AppDebug` – when true and `Mysql.DataBase` differs from `DataBaseTest`,
  the server speaks plain HTTP. Otherwise it serves HTTPS with the
  certificate and key at `CA.Crt` and `CA.Key` (TLS 1.1 to 1.3), and, unless
  `Mysql.DataBase` equals `DataBaseTest`, also listens on port 80 to redirect
  to HTTPS. Outside debug mode plain requests to the application are
  redirected to HTTPS and security headers (HSTS, `X-Frame-Options: DENY`,
  `nosniff`, XSS protection) are added.
- `Sqlite.Path` – the database file (default `imgtools.db`); the tables are
  created on start.
- `OtherFile.BanIP` – a gzip file of permanently banned addresses, read on
  start and written back on shutdown.
- `OtherFile.CnIp` – a list of CIDR blocks, one per line; it is read on
  start but no request is filtered by it.
- `WebPackageName.Web` / `WebPackageName.H5` – directories of the desktop
  and mobile front ends.
- `RateLimit.ToolsPerSecond` – how many `/tools/...` requests pass per
  second (default 1); a request queued for more than ten seconds gets 406.

Relative paths are taken from the project root.

While running, the server sweeps the IP table every 60 seconds, folds the
usage counters into the database every hour and at midnight, moves
day-old tasks and orders to their backup tables at 05:00 and deletes files
older than a day under `save/` at 04:00. SIGINT, SIGTERM, SIGQUIT or a
request to `/exitService` stop it: the listeners close, the permanent ban
list is saved, the counters are flushed and the periodic jobs end.

### Routes

Every request outside the local routes passes the IP check first. A client
limited to 127 visits a minute is banned for 5 minutes on going over;
responses in the 3xx range give the visit back.

- `/`, `/home/...`, `/image/...`, `/images/...`, `/sitemap.xml` – static
  pages, limited to 50 requests a second with bursts of 20.
- `/dist/...` – static assets, not rate limited.
- `GET /tools/tool` – the tool named by the `tool-id` header.
- `GET /tools/imgDown/<toolId>/<taskId>` – the processed result of a task,
  as an attachment; uses up one download unless `Sec-Fetch-Dest` is
  `document`.
- `GET /tools/downTimes` – downloads left for the task in the `task-id`
  header (which must pass `check_user_id`) and the tool in `tool-id`.

Answers are JSON of the form `{"code": ..., "data": ...}`, built by
`imgtools.response.success` and `fail`.

Routes answered only to 127.0.0.1: `/exitService`, `/ip/get_len`,
`/ip/get_ban`, `/ip/get_size`, `/ip/add_ban?ip=...&time=...`,
`/ip/delete?ip=...` (answers 0 when removed, -1 when unknown, -2 when the
address is malformed), `/static/update` (reloads the front ends) and
`/tools/update` (reloads the tool table).

`imgtools.app.create_app(settings, ip_visit, static_store, conn, stats,
exit_event)` builds this Flask application, for running it under any WSGI
server.

## What the package does not do

The package does no image processing of its own and calls no outside
service: there are no endpoints that change photo backgrounds, compress,
convert or enhance images or turn images into documents, no captcha, and
no payment provider. Orders can be stored, read and updated with
`imgtools.models.Order`, but nothing creates or pays them over HTTP. The
only storage is SQLite.

## Using the pieces as a library

### IP visit control

`imgtools.ipmanage.IpVisit` counts visits per address within a cycle and
bans addresses that go over the limit. Values follow one scale: a positive
number is the visit count in the current cycle, a negative number is the
remaining ban in minutes, `-128` is a permanent ban and `0` means the
address was malformed or is unknown.

```python
from imgtools.ipmanage import IpVisit

visits = IpVisit(limit=127, cycle_second=60, visit_limit_ban_time=5)

visits.add("203.0.113.7")                 # 1: first visit this cycle
visits.add_ban_time("203.0.113.8", -128)  # -128: banned for good
visits.get_permanent_ban_strings()        # ["203.0.113.8"]
visits.delete_ip("203.0.113.7")           # True: record removed
```

`is_ban(ip)` reads the value and `delete_ip(ip)` removes it; both raise
`ValueError` for a malformed address. `sweep()` runs one cycle of the
periodic check (ban minutes count down, visit counts drop by 50, empty
ranges are freed); `start_checker(stop_event)` runs it in a background
thread until the event is set. `save_ban_ip(path)` and `load_ban_ip(path)`
keep the permanent bans in a gzip file. `ip_to_bytes`, `load_ip_masks` and
`ip_in` parse addresses, read CIDR lists and search sorted networks.

### Task ids

`imgtools.taskid.new_task_id(seed)` makes an eight-character id of digits
and capital letters whose last two characters are a check code (a fresh
`imgtools.snowid.next_id()` is used when no seed is given);
`check_user_id(task_id)` tells whether an id a client sent is well formed.

### Static files

`imgtools.staticfiles.StaticStore` loads the desktop and mobile front ends
into memory with an MD5 tag for each file. `serve(url_path, user_agent,
headers)` returns a `StaticResponse`: it picks the mobile set for user
agents containing `Mobile`, falls back to `index.html` for directory paths
and to `/404.html` for unknown files, answers `If-None-Match` with 304, and
prefers a `.br` or `.gz` sibling when the client accepts that encoding.
`reload()` swaps in a fresh copy.

### Records, downloads and statistics

`imgtools.models` holds the database records (`Tool`, `ImgTask`, `Order`)
and their queries, raising `ModelError` on failure; `create_schema(conn)`
prepares the tables. `imgtools.downloads` checks uploads (`check_image`,
`detect_image_extension`) and spends downloads (`down_img`).
`imgtools.statistics.ToolStatistics` counts calls, successes, payments,
refunds, downloads and outside API calls per tool and day, and
`summary(timestamp)` folds a day's counts into the database.
`imgtools.maintenance` moves day-old tasks and orders into their backup
tables and removes saved files older than a day. `imgtools.ratelimit`
offers `TokenBucket` and `LeakyBucket`; `imgtools.config.load_settings`
reads the YAML settings.