"""
Unit tests for settings and the command line.

Tests cover:
- Connection string normalization
- RPC address normalization
- Network naming
- Flag/environment layering
"""

import pytest
from pydantic import ValidationError

from tgi.cli import VERSION_BANNER, load_settings, parse_args
from tgi.config.settings import (
    Settings,
    normalize_connection_string,
    normalize_rpc_address,
    parse_version,
)
from tgi.main import main


class TestConnectionString:
    """Test DSN normalization."""

    def test_postgres_scheme_uses_asyncpg(self):
        url = normalize_connection_string("postgres://user:pass@db:5432/tgi")
        assert url == "postgresql+asyncpg://user:pass@db:5432/tgi"

    def test_sslmode_mapped_to_ssl(self):
        url = normalize_connection_string(
            "postgresql://user:pass@db:5432/tgi?sslmode=require&application_name=tgi"
        )
        assert url == (
            "postgresql+asyncpg://user:pass@db:5432/tgi?ssl=require&application_name=tgi"
        )

    @pytest.mark.parametrize("mode", ["disable", "prefer", "verify-ca", "verify-full"])
    def test_every_libpq_sslmode_passed_through(self, mode):
        url = normalize_connection_string(f"postgres://u:p@db/tgi?sslmode={mode}")
        assert url == f"postgresql+asyncpg://u:p@db/tgi?ssl={mode}"

    def test_unknown_sslmode_rejected(self):
        with pytest.raises(ValueError):
            normalize_connection_string("postgres://u:p@db/tgi?sslmode=sometimes")

    def test_non_postgres_url_unchanged(self):
        assert normalize_connection_string("sqlite+aiosqlite://") == "sqlite+aiosqlite://"


class TestRpcAddress:
    """Test node address normalization."""

    def test_host_only_gets_default_port(self):
        assert normalize_rpc_address("localhost") == "ws://localhost:18110"

    def test_host_and_port(self):
        assert normalize_rpc_address("10.0.0.5:17110") == "ws://10.0.0.5:17110"

    def test_full_url_kept(self):
        assert normalize_rpc_address("wss://node.example:443") == "wss://node.example:443"


class TestSettings:
    """Test settings validation and derived values."""

    def test_mainnet_network(self):
        assert Settings(connection_string="sqlite+aiosqlite://").network == "tondi-mainnet"

    def test_testnet_network_with_suffix(self):
        settings = Settings(connection_string="sqlite+aiosqlite://", testnet=True, netsuffix=11)
        assert settings.network == "tondi-testnet11"

    def test_testnet_network_without_suffix(self):
        settings = Settings(connection_string="sqlite+aiosqlite://", testnet=True)
        assert settings.network == "tondi-testnet"

    def test_warn_log_level(self):
        settings = Settings(connection_string="sqlite+aiosqlite://", log_level="warn")
        assert settings.log_level == "WARNING"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            Settings(connection_string="sqlite+aiosqlite://", log_level="loud")

    def test_empty_connection_string_rejected(self):
        with pytest.raises(ValidationError):
            Settings(connection_string="  ")

    def test_invalid_min_node_version_rejected(self):
        with pytest.raises(ValidationError):
            Settings(connection_string="sqlite+aiosqlite://", min_node_version="latest")


class TestParseVersion:
    """Test version parsing."""

    def test_plain(self):
        assert parse_version("1.2.3") == (1, 2, 3)

    def test_prefix_and_suffixes_ignored(self):
        assert parse_version("v0.14.1-dev+abc") == (0, 14, 1)

    def test_ordering(self):
        assert parse_version("1.10.0") > parse_version("1.9.3")

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_version("one.two")


class TestCommandLine:
    """Test flag parsing and layering over the environment."""

    def test_flags_override_environment(self, monkeypatch):
        monkeypatch.setenv("TGI_RPCSERVER", "env-node:1")
        args = parse_args([
            "--connection-string", "postgres://u:p@db/tgi",
            "--rpcserver", "cli-node:2",
            "--clear-db",
            "--loglevel", "debug",
        ])

        settings = load_settings(args)

        assert settings.rpcserver == "cli-node:2"
        assert settings.clear_db is True
        assert settings.resync is False
        assert settings.log_level == "DEBUG"
        assert settings.database_url == "postgresql+asyncpg://u:p@db/tgi"

    def test_absent_flags_keep_environment(self, monkeypatch):
        monkeypatch.setenv("TGI_RPCSERVER", "env-node:1")
        monkeypatch.setenv("TGI_RESYNC", "true")

        settings = load_settings(parse_args([]))

        assert settings.rpcserver == "env-node:1"
        assert settings.resync is True

    def test_missing_connection_string(self, monkeypatch):
        monkeypatch.delenv("TGI_CONNECTION_STRING", raising=False)
        with pytest.raises(ValidationError):
            load_settings(parse_args([]))

    @pytest.mark.asyncio
    async def test_show_version(self, capsys):
        assert await main(["-V"]) == 0
        assert capsys.readouterr().out.strip() == VERSION_BANNER
        assert VERSION_BANNER.startswith("tondi-graph-inspector-processing version ")
