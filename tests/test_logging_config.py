import json
import logging

from shared.core.logging_config import (
    PerformanceFilter,
    SecurityFilter,
    StructuredFormatter,
    clear_request_context,
    get_trace_context,
    set_request_context,
)


def make_record(msg="hello", **attrs):
    record = logging.LogRecord("storefront.test", logging.INFO, __file__, 10, msg, None, None)
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


def test_formatter_emits_json_with_service_identity():
    formatter = StructuredFormatter("storefront-service", "test", "1.2.3")

    out = json.loads(formatter.format(make_record("order paid")))

    assert out["message"] == "order paid"
    assert out["service"] == "storefront-service"
    assert out["environment"] == "test"
    assert out["level"] == "INFO"


def test_formatter_includes_request_context():
    formatter = StructuredFormatter("storefront-service", "test", "1.2.3")
    clear_request_context()
    set_request_context(request_id="req-1", user_id="user-9")
    try:
        out = json.loads(formatter.format(make_record()))
    finally:
        clear_request_context()

    assert out["trace"] == {"request_id": "req-1", "user_id": "user-9"}
    assert get_trace_context() is None


def test_security_filter_redacts_credentials():
    record = make_record(extra_fields={"password": "hunter22", "Authorization": "Bearer x", "path": "/orders/"})

    SecurityFilter().filter(record)

    assert record.extra_fields == {
        "password": "***REDACTED***",
        "Authorization": "***REDACTED***",
        "path": "/orders/",
    }


def test_performance_filter_converts_duration():
    record = make_record(duration=0.25)
    PerformanceFilter().filter(record)
    out = json.loads(StructuredFormatter("s", "e", "v").format(record))
    assert out["performance"] == {"duration_ms": 250.0}
