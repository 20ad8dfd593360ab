from imgtools import response


def test_success_wraps_data_with_ok_code():
    body = response.success({"a": 1})
    assert body == {"code": response.STATUS_OK_CODE, "data": {"a": 1}}


def test_fail_keeps_given_code():
    body = response.fail(response.ACCESS_FORBIDDEN_CODE, "禁止访问")
    assert body["code"] == -403
    assert body["data"] == "禁止访问"


def test_exception_is_turned_into_message():
    body = response.fail(response.EXECUTE_ERROR_CODE, ValueError("boom"))
    assert body == {"code": -1, "data": "boom"}


def test_return_json_passes_plain_values_through():
    body = response.return_json(response.CURD_SELECT_FAIL_CODE, [1, 2])
    assert body == {"code": -204, "data": [1, 2]}


def test_success_with_exception_data():
    body = response.success(RuntimeError(response.UNKNOWN_ERROR_MSG))
    assert body["data"] == response.UNKNOWN_ERROR_MSG