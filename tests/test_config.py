"""
Unit tests for API configuration.
"""

import pytest
from pydantic import ValidationError

from library_api.config import APIConfig


def test_defaults():
    config = APIConfig(_env_file=None)
    assert config.jwt_algorithm == "HS256"
    assert config.protect_book_mutations is True


def test_environment_override(monkeypatch):
    monkeypatch.setenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15")
    monkeypatch.setenv("MONGODB_DATABASE", "library_test")
    config = APIConfig(_env_file=None)
    assert config.access_token_expire_minutes == 15
    assert config.mongodb_database == "library_test"


def test_log_settings_normalized():
    config = APIConfig(_env_file=None, log_level="debug", log_format="CONSOLE")
    assert config.log_level == "DEBUG"
    assert config.log_format == "console"


@pytest.mark.parametrize("field,value", [
    ("log_level", "VERBOSE"),
    ("log_format", "xml"),
    ("bcrypt_rounds", 3),
    ("bcrypt_rounds", 20),
    ("access_token_expire_minutes", 0),
    ("jwt_algorithm", "RS256"),
])
def test_invalid_values(field, value):
    with pytest.raises(ValidationError):
        APIConfig(_env_file=None, **{field: value})


def test_config_is_frozen():
    config = APIConfig(_env_file=None)
    with pytest.raises(ValidationError):
        config.jwt_secret = "changed"
