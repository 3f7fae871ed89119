from __future__ import annotations

from velibadvisor.utils.safe import safe_float, safe_get, safe_int


def test_safe_get_walks_mappings_and_lists() -> None:
    payload = {"routes": [{"summary": {"distance": 2800.5, "duration": 900}}]}
    assert safe_get(payload, "routes.0.summary.distance") == 2800.5
    assert safe_get(payload, ["routes", 0, "summary", "duration"]) == 900


def test_safe_get_returns_default_on_partial_payloads() -> None:
    payload = {"routes": [], "records": None, "fields": {"name": None}}
    assert safe_get(payload, "routes.0.summary", "missing") == "missing"
    assert safe_get(payload, "records.0") is None
    assert safe_get(payload, "fields.name", "unnamed") == "unnamed"
    assert safe_get(payload, "fields.name.first") is None
    assert safe_get("not a mapping", "a.b", 0) == 0
    assert safe_get(payload, "routes.x") is None


def test_safe_numbers() -> None:
    assert safe_float("123.5") == 123.5
    assert safe_float("n/a") is None
    assert safe_float(True) is None
    assert safe_int("7") == 7
    assert safe_int(None, 3) == 3
    assert safe_int("7.9") == 7
