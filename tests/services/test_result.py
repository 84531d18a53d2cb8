"""Tests for the ServiceResult contract."""

from __future__ import annotations

import json

import pytest

from stagectl.services.result import ServiceError, ServiceResult


class TestServiceResult:
    def test_defaults(self) -> None:
        result = ServiceResult(ok=True, op="name")
        assert result.data == {}
        assert result.warnings == []
        assert result.error is None
        assert result.meta is None

    def test_frozen(self) -> None:
        result = ServiceResult(ok=True, op="name")
        with pytest.raises(Exception):
            result.ok = False  # type: ignore[misc]

    def test_json_round_trip(self) -> None:
        result = ServiceResult(
            ok=False,
            op="run",
            data={"exit_code": 1},
            error=ServiceError(code="PROCESS_FAILED", message="Build failed"),
        )
        parsed = json.loads(result.model_dump_json())
        assert parsed["error"]["code"] == "PROCESS_FAILED"
        assert parsed["error"]["detail"] == {}
        assert ServiceResult.model_validate(parsed) == result
