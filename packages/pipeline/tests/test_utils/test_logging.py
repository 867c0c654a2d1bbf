"""
tests/test_utils/test_logging.py — Secret masking and per-run log context.
"""

from __future__ import annotations

import pytest
import structlog

from mgnrega_pipeline.utils.logging import MASK, redact_secrets, sync_run_context


class TestRedactSecrets:
    def test_masks_top_level_and_params(self):
        event = redact_secrets(
            None,
            "info",
            {
                "event": "fetch_start",
                "api_key": "abc123",
                "params": {"api-key": "abc123", "format": "json"},
                "has_api_key": True,
            },
        )
        assert event["api_key"] == MASK
        assert event["params"] == {"api-key": MASK, "format": "json"}
        assert event["has_api_key"] is True
        assert event["event"] == "fetch_start"


class TestSyncRunContext:
    @pytest.mark.asyncio
    async def test_binds_run_id_and_mode_for_the_call(self):
        seen: dict = {}

        @sync_run_context("historical")
        async def work() -> str:
            seen.update(structlog.contextvars.get_contextvars())
            return "done"

        assert await work() == "done"
        assert seen["mode"] == "historical"
        assert len(seen["run_id"]) == 8
        assert "run_id" not in structlog.contextvars.get_contextvars()

    @pytest.mark.asyncio
    async def test_context_unbound_after_error(self):
        @sync_run_context("current")
        async def boom() -> None:
            raise RuntimeError("x")

        with pytest.raises(RuntimeError):
            await boom()
        assert "run_id" not in structlog.contextvars.get_contextvars()

    @pytest.mark.asyncio
    async def test_nested_call_keeps_outer_run_id(self):
        ids: list[str] = []

        @sync_run_context("current")
        async def inner() -> None:
            ids.append(structlog.contextvars.get_contextvars()["run_id"])

        @sync_run_context("historical")
        async def outer() -> None:
            ids.append(structlog.contextvars.get_contextvars()["run_id"])
            await inner()

        await outer()
        assert ids[0] == ids[1]
