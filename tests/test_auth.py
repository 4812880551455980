"""Unit tests for API key authentication."""

import asyncio
from unittest.mock import patch

import pytest
from fastapi import HTTPException

from oplimit.core.auth import parse_api_keys, validate_api_key, verify_api_key
from oplimit.core.errors import AuthenticationAppError


class TestParseAPIKeys:
    """Test API key parsing utility function."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("my-secret-key", {"my-secret-key"}),
            ("key1 , key2  ,  key3", {"key1", "key2", "key3"}),
            ("key1,key2,key1", {"key1", "key2"}),
            ("   ,  ,  ", set()),
            ("", set()),
            (None, set()),
        ],
    )
    def test_parse(self, raw, expected) -> None:
        assert parse_api_keys(raw) == expected


class TestValidateAPIKey:
    """Test core API key validation logic."""

    @patch("oplimit.core.auth.settings")
    def test_bypassed_when_auth_disabled(self, mock_settings) -> None:
        mock_settings.app.api_key_required = False

        validate_api_key("any-random-key")

    @patch("oplimit.core.auth.settings")
    def test_raises_when_no_keys_configured(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = None

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("some-key")

        assert exc_info.value.code == "api_keys_not_configured"

    @patch("oplimit.core.auth.settings")
    def test_accepts_valid_key(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key-1,valid-key-2"

        validate_api_key("valid-key-1")
        validate_api_key("valid-key-2")

    @patch("oplimit.core.auth.settings")
    def test_rejects_invalid_key(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key-1"

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("valid-key-")

        assert exc_info.value.code == "invalid_api_key"


class TestVerifyAPIKeyDependency:
    """Test the FastAPI dependency wrapper."""

    @patch("oplimit.core.auth.settings")
    def test_missing_key_is_forbidden(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True

        with pytest.raises(HTTPException) as exc_info:
            asyncio.run(verify_api_key(None))

        assert exc_info.value.status_code == 403

    @patch("oplimit.core.auth.settings")
    def test_invalid_key_is_forbidden(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key-1"

        with pytest.raises(HTTPException) as exc_info:
            asyncio.run(verify_api_key("wrong"))

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "Invalid or missing API key"

    @patch("oplimit.core.auth.settings")
    def test_disabled_auth_allows_missing_key(self, mock_settings) -> None:
        mock_settings.app.api_key_required = False

        assert asyncio.run(verify_api_key(None)) is None
