from unittest.mock import MagicMock

import google.auth
import pytest
from google.auth.exceptions import DefaultCredentialsError, RefreshError

from disk_lifecycle.core import auth as auth_module
from disk_lifecycle.core.auth import AuthManager
from disk_lifecycle.core.exceptions import AuthenticationError


@pytest.fixture
def credentials():
    creds = MagicMock()
    creds.valid = True
    return creds


@pytest.fixture
def fake_default(monkeypatch, credentials):
    monkeypatch.setattr(google.auth, "default", lambda: (credentials, "adc-project"))


@pytest.fixture
def fake_build(monkeypatch):
    build = MagicMock(return_value="compute-client")
    monkeypatch.setattr(auth_module.discovery, "build", build)
    return build


class TestAuthManager:
    def test_missing_credentials(self, monkeypatch):
        def no_credentials():
            raise DefaultCredentialsError("none")

        monkeypatch.setattr(google.auth, "default", no_credentials)

        with pytest.raises(AuthenticationError) as exc:
            AuthManager().get_credentials()
        assert exc.value.fix == "gcloud auth application-default login"

    def test_expired_credentials_are_refreshed(self, fake_default, credentials):
        credentials.valid = False
        credentials.expired = True
        credentials.refresh_token = "token"

        AuthManager().get_credentials()

        credentials.refresh.assert_called_once()

    def test_failed_refresh(self, fake_default, credentials):
        credentials.valid = False
        credentials.expired = True
        credentials.refresh_token = "token"
        credentials.refresh.side_effect = RefreshError("revoked")

        with pytest.raises(AuthenticationError):
            AuthManager().get_credentials()

    def test_get_client_uses_adc_project(self, fake_default, fake_build, credentials):
        compute, project = AuthManager().get_client()

        assert compute == "compute-client"
        assert project == "adc-project"
        args, kwargs = fake_build.call_args
        assert args == ("compute", "v1")
        assert kwargs["credentials"] is credentials
        assert kwargs["cache_discovery"] is False
        assert callable(kwargs["requestBuilder"])

    def test_explicit_project_wins_and_client_is_cached(self, fake_default, fake_build):
        manager = AuthManager()

        _, first = manager.get_client("my-project")
        _, second = manager.get_client()

        assert first == "my-project"
        assert second == "adc-project"
        assert fake_build.call_count == 1

    def test_build_failure(self, fake_default, monkeypatch):
        monkeypatch.setattr(auth_module.discovery, "build", MagicMock(side_effect=RuntimeError("offline")))

        with pytest.raises(AuthenticationError, match="offline"):
            AuthManager().get_client()
