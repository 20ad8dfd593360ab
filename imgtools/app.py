"""HTTP application: routes, access control, throttling and request tracing."""

from __future__ import annotations

import sqlite3
import threading
import time
from pathlib import Path
from typing import Any

from flask import Flask, Response, abort, g, jsonify, request, send_file

from imgtools import snowid
from imgtools.config import Settings
from imgtools.downloads import down_img
from imgtools.ipmanage import PERMANENT_BAN, IpVisit
from imgtools.models import ImgTask, ModelError, Tool, load_tools
from imgtools.ratelimit import LeakyBucket, TokenBucket
from imgtools.response import (
    ACCESS_FORBIDDEN_CODE,
    CURD_SELECT_FAIL_CODE,
    EXECUTE_ERROR_CODE,
    LOG_ID_KEY,
    TASK_ID_KEY,
    TOOL_ID_KEY,
    UNKNOWN_ERROR_CODE,
    UNKNOWN_ERROR_MSG,
    VALIDATOR_PARAMS_CHECK_FAIL_CODE,
    fail,
    success,
)
from imgtools.staticfiles import StaticStore
from imgtools.statistics import ToolStatistics
from imgtools.taskid import check_user_id

_LOCAL = "local"
_STATIC = "static"
_STATIC_LIMITED = "static-limited"
_TOOLS = "tools"

_LOCALHOST = "127.0.0.1"
_KEEP_SECONDS = 86400
_MAX_QUEUE_SECONDS = 10.0
_PAID_FIRST_TOOL = 27
_HSTS = "max-age=15768000; includeSubDomains; preload"
_ALLOW_HEADERS = f"Access-Control-Allow-Headers,{TASK_ID_KEY},{TOOL_ID_KEY}"


def _int8(value: int) -> int:
    return (value + 128) % 256 - 128


def _tool_json(tool: Tool) -> dict[str, Any]:
    return {
        "id": tool.id,
        "name": tool.name,
        "price": tool.price,
        "discountPrice": tool.discount_price,
    }


def create_app(
    settings: Settings,
    ip_visit: IpVisit,
    static_store: StaticStore,
    conn: sqlite3.Connection,
    stats: ToolStatistics,
    exit_event: threading.Event | None = None,
) -> Flask:
    """Build the WSGI application with every route and guard wired in."""
    app = Flask(__name__)
    app.json.ensure_ascii = False
    debug = settings.get_bool("AppDebug")
    exit_event = exit_event if exit_event is not None else threading.Event()
    tools: dict[int, Tool] = load_tools(conn)
    static_limiter = TokenBucket(50, 20)
    tools_limiter = TokenBucket(50, 20)
    leaky = LeakyBucket(float(settings.get("RateLimit.ToolsPerSecond", 1) or 1))
    categories: dict[str, str] = {}

    def register(rules, endpoint, category, view):
        for rule in rules:
            app.add_url_rule(rule, endpoint, view, methods=["GET"], strict_slashes=False)
        categories[endpoint] = category

    def reply(body: dict[str, Any]) -> Response:
        return jsonify(body)

    # ---- guards -----------------------------------------------------------

    def check_ip() -> Response | None:
        result = ip_visit.add(request.remote_addr or "")
        if result == 0:
            return reply(fail(ACCESS_FORBIDDEN_CODE, "ip格式错误"))
        if result == PERMANENT_BAN:
            return reply(fail(ACCESS_FORBIDDEN_CODE, "你已被禁用永久封禁！"))
        if result < 0:
            return reply(fail(ACCESS_FORBIDDEN_CODE, f"由于访问过于频繁，您已被禁用{-result}分钟！"))
        return None

    def check_https() -> Response | None:
        if not request.is_secure:
            query = request.query_string.decode("latin-1")
            location = "https://" + request.host + request.path + (f"?{query}" if query else "")
            return Response(status=301, headers={"Location": location})
        g.secure_headers = True
        return None

    @app.before_request
    def _guard():
        endpoint = None if request.method == "OPTIONS" else request.endpoint
        category = categories.get(endpoint)
        if category == _LOCAL:
            if request.remote_addr != _LOCALHOST:
                return jsonify("Unauthorized"), 401
            return None
        blocked = check_ip()
        if blocked is not None:
            return blocked
        g.ip_passed = True
        if not debug:
            redirect = check_https()
            if redirect is not None:
                return redirect
        if category == _STATIC:
            return None
        if category == _STATIC_LIMITED:
            return None if static_limiter.allow() else Response(status=429)
        g.cors = True
        if request.method == "OPTIONS":
            return Response(status=202)
        if category == _TOOLS:
            started = time.monotonic()
            if leaky.take() - started > _MAX_QUEUE_SECONDS:
                return Response(status=406)
            if not tools_limiter.allow():
                return Response(status=429)
            g.log_id = snowid.next_id()
        return None

    @app.after_request
    def _finish(response: Response) -> Response:
        if g.get("secure_headers"):
            response.headers["Strict-Transport-Security"] = _HSTS
            response.headers["X-Frame-Options"] = "DENY"
            response.headers["X-Content-Type-Options"] = "nosniff"
            response.headers["X-XSS-Protection"] = "1; mode=block"
        if g.get("cors"):
            response.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin", "")
            response.headers["Access-Control-Allow-Headers"] = _ALLOW_HEADERS
            response.headers["Access-Control-Allow-Credentials"] = "true"
        log_id = g.get("log_id")
        if log_id is not None:
            response.headers.add("Access-Control-Expose-Headers", LOG_ID_KEY)
            response.headers[LOG_ID_KEY] = str(log_id)
        if g.get("ip_passed") and 300 <= response.status_code < 400:
            ip_visit.reduce(request.remote_addr or "")
        return response

    @app.errorhandler(500)
    def _recover(_error):
        return reply(fail(UNKNOWN_ERROR_CODE, UNKNOWN_ERROR_MSG))

    # ---- local administration ---------------------------------------------

    def exit_service():
        exit_event.set()
        return jsonify({"msg": "退出服务"})

    def ip_get_len():
        return jsonify(ip_visit.get_len())

    def ip_get_ban():
        return jsonify(ip_visit.get_permanent_ban_strings())

    def ip_get_size():
        return jsonify(ip_visit.size_of())

    def ip_add_ban():
        try:
            ban_time = int(request.args.get("time", ""))
        except ValueError:
            return jsonify({"error": "time must be a number"})
        return jsonify(ip_visit.add_ban_time(request.args.get("ip", ""), _int8(ban_time)))

    def ip_delete():
        try:
            deleted = ip_visit.delete_ip(request.args.get("ip", ""))
        except ValueError:
            return jsonify(-2)
        return jsonify(0 if deleted else -1)

    def static_update():
        try:
            static_store.reload()
        except OSError as exc:
            return Response(str(exc), 200, mimetype="text/html")
        return Response("更新成功", 200, mimetype="text/html")

    def tools_update():
        try:
            fresh = load_tools(conn)
        except sqlite3.Error:
            return reply(fail(EXECUTE_ERROR_CODE, "更新工具信息失败"))
        tools.clear()
        tools.update(fresh)
        return reply(success("更新工具信息成功"))

    for rule, endpoint, view in (
        ("/exitService", "exit_service", exit_service),
        ("/ip/get_len", "ip_get_len", ip_get_len),
        ("/ip/get_ban", "ip_get_ban", ip_get_ban),
        ("/ip/get_size", "ip_get_size", ip_get_size),
        ("/ip/add_ban", "ip_add_ban", ip_add_ban),
        ("/ip/delete", "ip_delete", ip_delete),
        ("/static/update", "static_update", static_update),
        ("/tools/update", "tools_update", tools_update),
    ):
        register([rule], endpoint, _LOCAL, view)

    # ---- static site ------------------------------------------------------

    def proxy_static(name: str | None = None):
        served = static_store.serve(
            request.path, request.headers.get("User-Agent", ""), dict(request.headers)
        )
        response = Response(served.body, status=served.status)
        if "Content-Type" not in served.headers:
            del response.headers["Content-Type"]
        for key, value in served.headers.items():
            response.headers[key] = value
        return response

    def sitemap():
        path = Path.cwd() / "sitemap" / "sitemap.xml"
        if not path.is_file():
            abort(404)
        return send_file(path)

    register(["/dist/", "/dist/<path:name>"], "dist", _STATIC, proxy_static)
    register(
        [
            "/",
            "/images/",
            "/images/<path:name>",
            "/home/",
            "/home/<path:name>",
            "/image/",
            "/image/<path:name>",
        ],
        "pages",
        _STATIC_LIMITED,
        proxy_static,
    )
    register(["/sitemap.xml"], "sitemap", _STATIC_LIMITED, sitemap)

    # ---- tool endpoints ---------------------------------------------------

    def header_tool() -> tuple[Tool | None, str]:
        try:
            tool_id = int(request.headers.get(TOOL_ID_KEY, ""))
        except ValueError:
            return None, "工具id输入错误"
        tool = tools.get(tool_id)
        return (tool, "") if tool is not None else (None, "工具不存在")

    def get_tool_msg():
        tool, error = header_tool()
        if tool is None:
            return reply(fail(EXECUTE_ERROR_CODE, error))
        return reply(success(_tool_json(tool)))

    def image_down(tool_id: str, task_id: str):
        try:
            tool_number = int(tool_id)
        except ValueError:
            return reply(fail(VALIDATOR_PARAMS_CHECK_FAIL_CODE, "工具id输入错误"))
        tool = tools.get(tool_number)
        if tool is None:
            return reply(fail(VALIDATOR_PARAMS_CHECK_FAIL_CODE, "工具不存在"))
        if tool_number == _PAID_FIRST_TOOL:
            return reply(fail(VALIDATOR_PARAMS_CHECK_FAIL_CODE, "该类型的资源请到对应页面中进行下载"))
        # Mobile browsers fetch a download twice; the first (document) fetch is free.
        reduce_times = request.headers.get("Sec-Fetch-Dest") != "document"
        task = ImgTask(id=task_id, tool_id=tool_number)
        try:
            down_img(conn, task, reduce_times)
        except ModelError as exc:
            return reply(fail(EXECUTE_ERROR_CODE, str(exc)))
        path = (Path(tool.save_dir) / f"result_{task.id}.{task.suffix}").resolve()
        if not path.is_file():
            abort(404)
        stats.tool_download(tool_number)
        response = send_file(path, as_attachment=True, download_name=f"{task.id}.{task.suffix}")
        response.headers.add("Access-Control-Expose-Headers", "Content-Disposition,down-times")
        response.headers["down-times"] = str(task.download_times)
        return response

    def get_down_times():
        task_id = request.headers.get(TASK_ID_KEY, "")
        if not task_id:
            return reply(fail(ACCESS_FORBIDDEN_CODE, "必须输入任务id"))
        if not check_user_id(task_id):
            return reply(fail(ACCESS_FORBIDDEN_CODE, "输入的任务编号有误，请重新输入"))
        tool, error = header_tool()
        if tool is None:
            return reply(fail(VALIDATOR_PARAMS_CHECK_FAIL_CODE, error))
        task = ImgTask(id=task_id, tool_id=tool.id)
        try:
            task.find_with_create_time(conn, _KEEP_SECONDS)
        except ModelError as exc:
            return reply(fail(CURD_SELECT_FAIL_CODE, str(exc)))
        return reply(success(task.download_times))

    register(["/tools/tool"], "get_tool_msg", _TOOLS, get_tool_msg)
    register(["/tools/imgDown/<tool_id>/<task_id>"], "image_down", _TOOLS, image_down)
    register(["/tools/downTimes"], "get_down_times", _TOOLS, get_down_times)

    return app