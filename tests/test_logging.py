import json
import logging

from landhacker.core.logging import JsonFormatter, RequestIdFilter, request_id_var


def make_record(**extra):
    record = logging.LogRecord("landhacker.test", logging.WARNING, __file__, 1, "value %s", ("x",), None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


def test_json_line_carries_request_id_and_stage():
    token = request_id_var.set("req-1")
    try:
        record = make_record(stage="validate", reason="invalid_estimate_format")
        RequestIdFilter().filter(record)
        line = json.loads(JsonFormatter().format(record))
    finally:
        request_id_var.reset(token)

    assert line == {
        "level": "WARNING",
        "msg": "value x",
        "logger": "landhacker.test",
        "request_id": "req-1",
        "stage": "validate",
        "reason": "invalid_estimate_format",
    }


def test_no_request_id_outside_a_request():
    record = make_record()
    RequestIdFilter().filter(record)
    assert "request_id" not in json.loads(JsonFormatter().format(record))
