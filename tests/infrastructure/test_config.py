import pytest
from unittest.mock import patch

from infrastructure.config import Settings


@pytest.fixture
def clean_env(monkeypatch):
    for name in ('STATUS_API_URL', 'STATUS_API_TOKEN', 'STATUS_API_TIMEOUT', 'REFRESH_INTERVAL',
                 'HOST', 'PORT', 'FLASK_DEBUG', 'LOG_LEVEL'):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettings:
    """Test suite for environment configuration."""

    def test_defaults(self, clean_env):
        settings = Settings.from_env(load_dotenv_file=False)

        assert settings == Settings()
        assert settings.api_token is None
        assert settings.refresh_interval == 60

    def test_reads_environment(self, clean_env):
        clean_env.setenv('STATUS_API_URL', 'https://status.internal/')
        clean_env.setenv('STATUS_API_TOKEN', 'secret')
        clean_env.setenv('STATUS_API_TIMEOUT', '2.5')
        clean_env.setenv('REFRESH_INTERVAL', '30')
        clean_env.setenv('PORT', '8000')
        clean_env.setenv('FLASK_DEBUG', '1')
        clean_env.setenv('LOG_LEVEL', 'debug')

        settings = Settings.from_env(load_dotenv_file=False)

        assert settings.api_url == 'https://status.internal'
        assert settings.api_token == 'secret'
        assert settings.api_timeout == 2.5
        assert settings.refresh_interval == 30
        assert settings.port == 8000
        assert settings.debug is True
        assert settings.log_level == 'DEBUG'

    def test_empty_token_is_none(self, clean_env):
        clean_env.setenv('STATUS_API_TOKEN', '')

        assert Settings.from_env(load_dotenv_file=False).api_token is None

    def test_bad_number_raises(self, clean_env):
        clean_env.setenv('REFRESH_INTERVAL', 'often')

        with pytest.raises(ValueError):
            Settings.from_env(load_dotenv_file=False)

    def test_non_positive_interval_rejected(self):
        with pytest.raises(ValueError):
            Settings(refresh_interval=0)

    def test_loads_dotenv_file_first(self, clean_env):
        with patch('infrastructure.config.load_dotenv') as mock_load:
            Settings.from_env()

        mock_load.assert_called_once_with()

    def test_skips_dotenv_file(self, clean_env):
        with patch('infrastructure.config.load_dotenv') as mock_load:
            Settings.from_env(load_dotenv_file=False)

        mock_load.assert_not_called()
