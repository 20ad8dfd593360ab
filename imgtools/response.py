"""Response codes and the JSON envelope returned by every endpoint."""

from __future__ import annotations

from typing import Any

VALIDATOR_PARAMS_CHECK_FAIL_CODE = -400
VALIDATOR_PARAMS_CHECK_FAIL_MSG = "参数校验失败"

EXECUTE_ERROR_CODE = -1

STATUS_OK_CODE = 200
STATUS_OK_MSG = "Success"

CURD_CREATE_FAIL_CODE = -201
CURD_CREATE_FAIL_MSG = "数据库插入失败"
CURD_UPDATE_FAIL_CODE = -202
CURD_UPDATE_FAIL_MSG = "数据库更新失败"
CURD_DELETE_FAIL_CODE = -203
CURD_DELETE_FAIL_MSG = "数据库删除失败"
CURD_SELECT_FAIL_CODE = -204
CURD_SELECT_FAIL_MSG = "数据库查询失败"

UNKNOWN_ERROR_CODE = -500
UNKNOWN_ERROR_MSG = "系统发生未知异常，请联系系统管理员"

ACCESS_FORBIDDEN_CODE = -403
ACCESS_FORBIDDEN_MSG = "禁止访问"

ACCESS_SUCCESS_CODE = 200

MYSQL_LOG_KEY_NAME = "myLog"
LOG_ID_KEY = "log-id"
TASK_ID_KEY = "task-id"
TOOL_ID_KEY = "tool-id"

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Visits subtracted from every address on each sweep of the IP table.
IP_PER_ALLOW = 50


def return_json(code: int, data: Any) -> dict[str, Any]:
    """Build the ``{"code", "data"}`` body; exceptions become their message."""
    if isinstance(data, BaseException):
        data = str(data)
    return {"code": code, "data": data}


def success(data: Any) -> dict[str, Any]:
    """Body of a successful response."""
    return return_json(STATUS_OK_CODE, data)


def fail(code: int, data: Any) -> dict[str, Any]:
    """Body of a failed response carrying a business error code."""
    return return_json(code, data)