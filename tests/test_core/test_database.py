"""Tests for database URL handling."""

from discount_scheduler.core.database import clean_database_url


class TestCleanDatabaseUrl:
    """Tests for clean_database_url."""

    def test_strips_asyncpg_incompatible_params(self):
        url, connect_args = clean_database_url(
            "postgresql+asyncpg://u:p@ep-x.neon.tech/db?sslmode=require&channel_binding=require"
        )
        assert "sslmode" not in url
        assert "channel_binding" not in url
        assert "ssl" in connect_args

    def test_local_host_without_ssl(self):
        url, connect_args = clean_database_url("postgresql+asyncpg://u:p@localhost:5432/db")
        assert url == "postgresql+asyncpg://u:p@localhost:5432/db"
        assert connect_args == {}

    def test_sqlite_untouched(self):
        url, connect_args = clean_database_url("sqlite+aiosqlite:///:memory:")
        assert url == "sqlite+aiosqlite:///:memory:"
        assert connect_args == {}
