"""Tests for log formatting helpers."""

from types import SimpleNamespace

from discount_scheduler.core.logging import _quiet_polling_filter, _render_context


def _record(message: str, level_no: int = 20, **extra) -> dict:
    return {"message": message, "level": SimpleNamespace(no=level_no), "extra": extra}


class TestPollingFilter:
    """Tests for hiding polling access lines outside DEBUG."""

    def test_hides_cron_ping_at_info(self):
        assert _quiet_polling_filter(_record('"GET /api/cron?key=*** HTTP/1.1" 200')) is False

    def test_hides_health_check_at_info(self):
        assert _quiet_polling_filter(_record('"GET /health HTTP/1.1" 200')) is False

    def test_shows_polling_at_debug(self):
        assert _quiet_polling_filter(_record('"GET /health HTTP/1.1" 200', level_no=10)) is True

    def test_keeps_other_requests(self):
        assert _quiet_polling_filter(_record('"POST /api/schedule HTTP/1.1" 200')) is True


class TestRenderContext:
    """Tests for rendering bound context."""

    def test_renders_pairs_without_name(self):
        record = _record("discount_applied", name="runner", variant_id="1001", new_price="70.00")

        assert _render_context(record) == "variant_id=1001 new_price=70.00"

    def test_empty_context(self):
        assert _render_context(_record("app_stopped", name="main")) == ""
