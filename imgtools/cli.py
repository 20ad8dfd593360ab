"""Command that starts the service and runs until told to stop."""

from __future__ import annotations

import argparse
import logging
import signal
import sqlite3
import ssl
import threading
import time
from datetime import datetime, timedelta
from pathlib import Path
from socketserver import ThreadingMixIn
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

import yaml

from imgtools.app import create_app
from imgtools.config import Settings, load_settings
from imgtools.fileutil import file_or_path_exists
from imgtools.ipmanage import IpVisit, load_ip_masks
from imgtools.maintenance import del_save_files, migrate_img_task_data, migrate_order_data
from imgtools.models import create_schema
from imgtools.serverlog import ServerLog
from imgtools.staticfiles import StaticStore
from imgtools.statistics import ToolStatistics, today_timestamp

_logger = logging.getLogger(__name__)

EXIT_STOPPED = 15
_DAY = 86400
_HOUR = 3600


class _Server(ThreadingMixIn, WSGIServer):
    daemon_threads = True


class _Handler(WSGIRequestHandler):
    _sink = ServerLog()

    def log_message(self, format, *args):  # noqa: A002 - signature of the base class
        pass

    def log_error(self, format, *args):  # noqa: A002
        self._sink.write((format % args) + "\n")


def _redirect_app(environ, start_response):
    host = environ.get("HTTP_HOST") or environ.get("SERVER_NAME", "")
    location = "https://" + host + environ.get("PATH_INFO", "")
    start_response(
        "301 Moved Permanently",
        [("Location", location), ("Content-Type", "text/html; charset=utf-8")],
    )
    return [b""]


def _path(base: Path, value) -> Path:
    path = Path(str(value))
    return path if path.is_absolute() else base / path


def _address(value: str) -> tuple[str, int]:
    host, _, port = str(value).rpartition(":")
    return host or "0.0.0.0", int(port)


def _serve(server) -> threading.Thread:
    thread = threading.Thread(target=server.serve_forever, name="http", daemon=True)
    thread.start()
    return thread


def _daily(stop: threading.Event, hour: int, job) -> None:
    target = datetime.fromtimestamp(today_timestamp()) + timedelta(days=1, hours=hour)
    while not stop.wait(max((target - datetime.now()).total_seconds(), 0)):
        try:
            job()
        except Exception:
            _logger.exception("scheduled job failed")
        target += timedelta(days=1)


def _usage_loop(stats: ToolStatistics, stop: threading.Event) -> None:
    next_zero = stats.zero_stamp + _DAY
    next_hour = time.time() + _HOUR
    while True:
        wait = max(min(next_zero, next_hour) - time.time(), 0)
        if stop.wait(wait):
            stats.summary(stats.zero_stamp)
            return
        now = time.time()
        if now >= next_zero:
            stats.summary(stats.zero_stamp)
            stats.zero_stamp = today_timestamp()
            next_zero += _DAY
        elif now >= next_hour:
            stats.summary(stats.zero_stamp)
            next_hour += _HOUR


def _spawn(name: str, target, *args) -> threading.Thread:
    thread = threading.Thread(target=target, args=args, name=name, daemon=True)
    thread.start()
    return thread


def _start_timers(ip_visit, stats, conn, base: Path, stop: threading.Event) -> list[threading.Thread]:
    def migrate() -> None:
        migrate_img_task_data(conn)
        migrate_order_data(conn)

    return [
        _spawn("tool-usage", _usage_loop, stats, stop),
        _spawn("data-migration", _daily, stop, 5, migrate),
        _spawn("save-cleanup", _daily, stop, 4, lambda: del_save_files(base / "save")),
        ip_visit.start_checker(stop),
    ]


def _start_servers(settings: Settings, base: Path, app) -> list:
    host, port = _address(settings.get("HttpServer.Port", ":8080"))
    database = str(settings.get("Mysql.DataBase", ""))
    test_database = str(settings.get("DataBaseTest", ""))
    if settings.get_bool("AppDebug") and database != test_database:
        server = make_server(host, port, app, server_class=_Server, handler_class=_Handler)
        _serve(server)
        return [server]

    cert = _path(base, settings.get("CA.Crt", ""))
    key = _path(base, settings.get("CA.Key", ""))
    if not file_or_path_exists(cert) or not file_or_path_exists(key):
        raise FileNotFoundError("读取SSL证书失败")
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = ssl.TLSVersion.TLSv1_1
    context.maximum_version = ssl.TLSVersion.TLSv1_3
    context.load_cert_chain(cert, key)

    servers = []
    if database != test_database:
        redirect = make_server("0.0.0.0", 80, _redirect_app, server_class=_Server, handler_class=_Handler)
        _serve(redirect)
        servers.append(redirect)
    server = make_server(host, port, app, server_class=_Server, handler_class=_Handler)
    server.socket = context.wrap_socket(server.socket, server_side=True)
    _serve(server)
    servers.append(server)
    return servers


def main(argv=None) -> int:
    """Start the service; returns the process exit status."""
    parser = argparse.ArgumentParser(prog="imgtools", description="Image tools web service.")
    parser.add_argument("--base", help="project root holding config/config.yml")
    args = parser.parse_args(argv)
    base = Path(args.base).resolve() if args.base else Path.cwd()

    if not (base / "config" / "config.yml").is_file():
        _logger.error("config.yml 配置文件不存在")
        return 1
    try:
        settings = load_settings(base)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        _logger.error("读取配置文件失败: %s", exc)
        return 1

    conn = sqlite3.connect(
        str(_path(base, settings.get("Sqlite.Path", "imgtools.db"))), check_same_thread=False
    )
    try:
        create_schema(conn)
        ip_visit = IpVisit(127, 60, 5)
        ban_file = settings.get("OtherFile.BanIP", "")
        if ban_file:
            ip_visit.load_ban_ip(_path(base, ban_file))
        cn_file = settings.get("OtherFile.CnIp", "")
        if cn_file:
            load_ip_masks(_path(base, cn_file))
        static_store = StaticStore(
            _path(base, settings.get("WebPackageName.Web", "")),
            _path(base, settings.get("WebPackageName.H5", "")),
        )
        stats = ToolStatistics(conn)
        exit_event = threading.Event()
        app = create_app(settings, ip_visit, static_store, conn, stats, exit_event)
        servers = _start_servers(settings, base, app)
    except (OSError, ValueError, sqlite3.Error, ssl.SSLError) as exc:
        _logger.error("启动失败: %s", exc)
        conn.close()
        return 1

    stop = threading.Event()
    timers = _start_timers(ip_visit, stats, conn, base, stop)

    previous = {}
    if threading.current_thread() is threading.main_thread():
        for name in ("SIGINT", "SIGTERM", "SIGQUIT"):
            sig = getattr(signal, name, None)
            if sig is not None:
                previous[sig] = signal.signal(sig, lambda *_: exit_event.set())
    try:
        while not exit_event.wait(1):
            pass
        _logger.info("收到信号，进程开始退出")
        for server in servers:
            server.shutdown()
            server.server_close()
        if ban_file:
            ip_visit.save_ban_ip(_path(base, ban_file))
        stop.set()
        for thread in timers:
            thread.join(timeout=10)
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
        conn.close()
    _logger.info("程序正常退出")
    return EXIT_STOPPED


if __name__ == "__main__":
    raise SystemExit(main())