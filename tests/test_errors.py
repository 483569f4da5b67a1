"""Tests for the error taxonomy and failure isolation helpers."""

import asyncio
import logging

import pytest

from tradewise.core import (
    DataError,
    ErrorCategory,
    ErrorCodes,
    ExternalServiceError,
    TradewiseError,
    ValidationError,
    run_isolated,
    run_isolated_async,
    wrap_exception,
)


# =============================================================================
# Exceptions
# =============================================================================


class TestTradewiseError:
    """Tests for TradewiseError and subclasses."""

    def test_messages(self):
        error = ValidationError(detail="half-life must be positive")

        assert error.code == "VALIDATION_4001"
        assert error.category == ErrorCategory.VALIDATION
        assert error.http_status == 400
        assert error.user_message == "A value is outside its allowed range. (half-life must be positive)"
        assert error.technical_message == "[VALIDATION_4001] Invalid value: half-life must be positive"
        assert str(error) == error.technical_message

    def test_subclass_defaults(self):
        assert DataError().error_code == ErrorCodes.DATA_MALFORMED_RECORD
        assert ExternalServiceError().error_code == ErrorCodes.EXTERNAL_ENRICHMENT_FAILED

    def test_to_dict(self):
        error = DataError(detail="trade 3", context={"index": 3})

        data = error.to_dict()
        assert data["code"] == "DATA_2001"
        assert data["category"] == "DATA"
        assert data["retryable"] is False
        assert "debug" not in data

        debug = error.to_dict(include_debug=True)["debug"]
        assert debug["context"] == {"index": 3}

    def test_log_uses_severity(self, caplog):
        with caplog.at_level(logging.DEBUG):
            DataError(detail="trade 3").log()
            ExternalServiceError(detail="screener").log()

        levels = [r.levelno for r in caplog.records]
        assert levels == [logging.WARNING, logging.ERROR]
        assert caplog.records[0].ctx_error_code == "DATA_2001"


class TestWrapException:
    """Tests for wrap_exception."""

    @pytest.mark.parametrize(
        "exception,error_cls,code",
        [
            (ValueError("bad"), DataError, ErrorCodes.DATA_MALFORMED_RECORD),
            (KeyError("side"), DataError, ErrorCodes.DATA_MALFORMED_RECORD),
            (asyncio.TimeoutError(), ExternalServiceError, ErrorCodes.EXTERNAL_TIMEOUT),
            (ConnectionError("down"), ExternalServiceError, ErrorCodes.EXTERNAL_ENRICHMENT_FAILED),
        ],
    )
    def test_mapping(self, exception, error_cls, code):
        wrapped = wrap_exception(exception)

        assert isinstance(wrapped, error_cls)
        assert wrapped.error_code == code
        assert wrapped.original_error is exception

    def test_unmapped_uses_default(self):
        wrapped = wrap_exception(RuntimeError("boom"), ErrorCodes.EXTERNAL_ENRICHMENT_FAILED)

        assert type(wrapped) is TradewiseError
        assert wrapped.error_code == ErrorCodes.EXTERNAL_ENRICHMENT_FAILED
        assert "original_traceback" in wrapped.debug_info

    def test_passes_through_tradewise_errors(self):
        error = ValidationError(detail="x")
        assert wrap_exception(error) is error


# =============================================================================
# Failure Isolation
# =============================================================================


class TestRunIsolated:
    """Tests for run_isolated."""

    def test_returns_result(self):
        assert run_isolated("Add", lambda a, b: a + b, 1, 2, fallback=0) == 3

    def test_failure_returns_fallback(self, caplog):
        def broken():
            raise ConnectionError("screener unavailable")

        assert run_isolated("Momentum discovery", broken, fallback=[]) == []
        assert "Momentum discovery failed, continuing without it" in caplog.text
        assert caplog.records[-1].ctx_step == "Momentum discovery"


class TestRunIsolatedAsync:
    """Tests for run_isolated_async."""

    @pytest.mark.asyncio
    async def test_returns_result(self):
        async def fetch(symbol):
            return [symbol]

        assert await run_isolated_async("Fetch", fetch, "AAPL", fallback=[]) == ["AAPL"]

    @pytest.mark.asyncio
    async def test_timeout_returns_fallback(self, caplog):
        async def slow():
            await asyncio.sleep(1)
            return ["AAPL"]

        result = await run_isolated_async("Slow step", slow, fallback=[], timeout=0.01)

        assert result == []
        assert caplog.records[-1].ctx_error_code == "EXTERNAL_6002"

    @pytest.mark.asyncio
    async def test_failure_returns_fallback(self):
        async def broken():
            raise RuntimeError("boom")

        assert await run_isolated_async("Broken", broken, fallback=None) is None

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        async def slow():
            await asyncio.sleep(1)

        task = asyncio.ensure_future(run_isolated_async("Slow", slow, fallback=None))
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
