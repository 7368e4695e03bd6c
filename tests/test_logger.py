import json
import logging
import re

from okr_tracker.core.logger import (
    AUDIT,
    REDACTED,
    JsonFormatter,
    RedactingFilter,
    generate_request_id,
    redact,
)


def _record(msg="hello", **extra):
    record = logging.LogRecord("okr_tracker.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_request_id_format():
    request_id = generate_request_id()
    assert re.fullmatch(r"req_[0-9a-z]+_[0-9a-z]{7}", request_id)
    assert generate_request_id() != request_id


def test_redact_masks_nested_sensitive_keys():
    data = {"user": "anna", "Authorization": "Bearer x", "nested": {"api_key": "k", "ok": [{"password": "p"}]}}
    assert redact(data) == {
        "user": "anna",
        "Authorization": REDACTED,
        "nested": {"api_key": REDACTED, "ok": [{"password": REDACTED}]},
    }


def test_filter_masks_extra_fields():
    record = _record(access_token="abc", payload={"secret": "s", "name": "x"}, user_id="u1")
    assert RedactingFilter().filter(record) is True
    assert record.access_token == REDACTED
    assert record.payload == {"secret": REDACTED, "name": "x"}
    assert record.user_id == "u1"


def test_json_formatter_emits_one_object_with_context():
    record = _record("Request finished", request_id="req_1_abcdefg", status_code=200)
    entry = json.loads(JsonFormatter().format(record))
    assert entry["message"] == "Request finished"
    assert entry["level"] == "info"
    assert entry["request_id"] == "req_1_abcdefg"
    assert entry["status_code"] == 200


def test_audit_level_is_registered():
    assert logging.getLevelName(AUDIT) == "AUDIT"
