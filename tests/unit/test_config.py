"""
Unit tests for configuration loading.
"""

import pytest

from userservice.config import ServiceConfig
from userservice.errors import ConfigError


ENV_VARS = [
    "DATABASE_URL", "HTTP_HOST", "HTTP_PORT", "HTTP_WORKERS", "HTTP_TIMEOUT",
    "HTTP_HEADER_IDLE_TIMEOUT",
    "HTTP_MAX_REQUEST_SIZE", "HTTP_LOG_LEVEL", "HTTP_LOG_FORMAT",
    "DB_POOL_SIZE", "DB_MAX_OVERFLOW", "DB_POOL_TIMEOUT", "DB_POOL_RECYCLE",
    "DB_CONNECT_TIMEOUT", "DB_STATEMENT_TIMEOUT_MS",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        # setenv first so the variable is restored (or removed) afterwards
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


class TestFromEnv:

    def test_missing_database_url(self, clean_env):
        with pytest.raises(ConfigError, match="DATABASE_URL"):
            ServiceConfig.from_env(load_env_file=False)

    def test_defaults(self, clean_env):
        clean_env.setenv("DATABASE_URL", "sqlite:///x.db")

        config = ServiceConfig.from_env(load_env_file=False)

        assert config.database_url == "sqlite:///x.db"
        assert config.host == "0.0.0.0"
        assert config.port == 8080
        assert config.max_request_size == 65536
        assert config.db_pool_size == 5
        assert config.log_format == "text"

    def test_overrides(self, clean_env):
        clean_env.setenv("DATABASE_URL", "postgresql://u:p@db/users")
        clean_env.setenv("HTTP_PORT", "9000")
        clean_env.setenv("HTTP_WORKERS", "8")
        clean_env.setenv("HTTP_TIMEOUT", "2.5")
        clean_env.setenv("DB_POOL_SIZE", "0")
        clean_env.setenv("HTTP_LOG_LEVEL", "debug")
        clean_env.setenv("HTTP_LOG_FORMAT", "JSON")

        config = ServiceConfig.from_env(load_env_file=False)

        assert config.port == 9000
        assert config.max_workers == 8
        assert config.timeout == 2.5
        assert config.db_pool_size == 0
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    @pytest.mark.parametrize("workers", ["1", "2", "3"])
    def test_few_workers_still_valid(self, clean_env, workers):
        clean_env.setenv("DATABASE_URL", "sqlite:///x.db")
        clean_env.setenv("HTTP_WORKERS", workers)

        config = ServiceConfig.from_env(load_env_file=False)
        config.validate()

        assert config.max_workers == int(workers)
        assert config.min_workers == int(workers)

    def test_explicit_url_wins(self, clean_env):
        config = ServiceConfig.from_env(load_env_file=False, database_url="sqlite:///y.db")
        assert config.database_url == "sqlite:///y.db"

    def test_bad_number_names_variable(self, clean_env):
        clean_env.setenv("DATABASE_URL", "sqlite:///x.db")
        clean_env.setenv("HTTP_PORT", "eighty")

        with pytest.raises(ConfigError, match="HTTP_PORT"):
            ServiceConfig.from_env(load_env_file=False)

    def test_dotenv_file(self, clean_env, tmp_path):
        """A .env in the working directory is picked up."""
        (tmp_path / ".env").write_text("DATABASE_URL=sqlite:///from-dotenv.db\n")
        clean_env.chdir(tmp_path)

        config = ServiceConfig.from_env()

        assert config.database_url == "sqlite:///from-dotenv.db"


class TestValidate:

    def test_valid(self):
        ServiceConfig(database_url="sqlite://").validate()

    @pytest.mark.parametrize("overrides", [
        {"database_url": ""},
        {"port": 70000},
        {"min_workers": 0},
        {"min_workers": 8, "max_workers": 4},
        {"queue_size": 0},
        {"timeout": 0},
        {"header_idle_timeout": 0},
        {"db_pool_size": -1},
        {"log_level": "LOUD"},
        {"log_format": "xml"},
    ])
    def test_invalid(self, overrides):
        values = {"database_url": "sqlite://", **overrides}
        with pytest.raises(ConfigError):
            ServiceConfig(**values).validate()
