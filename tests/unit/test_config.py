import pytest
from pydantic import ValidationError

from pricedesk.common.config import Settings


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestSettings:
    def test_database_url_from_parts(self, monkeypatch) -> None:
        monkeypatch.delenv("DATABASE_URL", raising=False)
        settings = _settings(DB_USER="desk", DB_PASSWORD="pw", DB_HOST="db", DB_PORT=5433, DB_NAME="prices")
        assert settings.database_url == "postgresql://desk:pw@db:5433/prices"

    def test_database_url_override(self) -> None:
        settings = _settings(DATABASE_URL="postgresql://u:p@localhost/other")
        assert settings.database_url == "postgresql://u:p@localhost/other"

    def test_log_level_normalized(self) -> None:
        assert _settings(LOG_LEVEL="debug").log_level == "DEBUG"

    def test_invalid_log_level(self) -> None:
        with pytest.raises(ValidationError):
            _settings(LOG_LEVEL="chatty")

    def test_invalid_environment(self) -> None:
        with pytest.raises(ValidationError):
            _settings(ENVIRONMENT="qa")

    @pytest.mark.parametrize("option", [100, 1000, 10000])
    def test_rounding_options(self, option: int) -> None:
        assert _settings(DEFAULT_ROUNDING_OPTION=option).default_rounding_option == option

    def test_invalid_rounding_option(self) -> None:
        with pytest.raises(ValidationError):
            _settings(DEFAULT_ROUNDING_OPTION=500)
