"""
Unit tests for SecretsManager.
"""

import json

import pytest

from shared.secrets_manager import SecretsManager


class TestSecretsManager:
    """Test cases for SecretsManager."""

    def test_environment_lookup(self, monkeypatch):
        monkeypatch.setenv("HERE_API_KEY", "from-env")

        assert SecretsManager().get_secret("HERE_API_KEY") == "from-env"

    def test_environment_lookup_upper_cases_name(self, monkeypatch):
        monkeypatch.setenv("HERE_API_KEY", "from-env")

        assert SecretsManager().get_secret("here_api_key") == "from-env"

    def test_missing_secret_returns_default(self, monkeypatch):
        monkeypatch.delenv("NOT_CONFIGURED_SECRET", raising=False)

        assert SecretsManager().get_secret("NOT_CONFIGURED_SECRET", "fallback") == "fallback"
        assert SecretsManager().get_secret(None, "fallback") == "fallback"

    def test_plain_file_lookup(self, tmp_path):
        path = tmp_path / "secrets.json"
        path.write_text(json.dumps({"traffic_key_plain": "plain-value"}))

        manager = SecretsManager(secrets_file=str(path))

        assert manager.get_secret("traffic_key_plain") == "plain-value"

    def test_environment_wins_over_file(self, tmp_path, monkeypatch):
        path = tmp_path / "secrets.json"
        path.write_text(json.dumps({"TRAFFIC_KEY_BOTH": "file-value"}))
        monkeypatch.setenv("TRAFFIC_KEY_BOTH", "env-value")

        manager = SecretsManager(secrets_file=str(path))

        assert manager.get_secret("TRAFFIC_KEY_BOTH") == "env-value"

    def test_encrypt_decrypt(self):
        manager = SecretsManager(master_key="master-key")

        token = manager.encrypt_secret("s3cret")

        assert token != "s3cret"
        assert manager.decrypt_secret(token) == "s3cret"

    def test_encrypted_file_lookup(self, tmp_path):
        manager = SecretsManager(master_key="master-key")
        path = tmp_path / "secrets.json"
        path.write_text(json.dumps({"traffic_key_sealed": manager.encrypt_secret("sealed")}))

        reader = SecretsManager(master_key="master-key", secrets_file=str(path))

        assert reader.get_secret("traffic_key_sealed") == "sealed"

    def test_wrong_master_key_returns_default(self, tmp_path):
        writer = SecretsManager(master_key="right")
        path = tmp_path / "secrets.json"
        path.write_text(json.dumps({"traffic_key_wrong": writer.encrypt_secret("sealed")}))

        reader = SecretsManager(master_key="wrong", secrets_file=str(path))

        assert reader.get_secret("traffic_key_wrong", "default") == "default"

    @pytest.mark.parametrize("master_key", ["master-key", None])
    def test_non_string_file_value_returns_default(self, tmp_path, master_key):
        path = tmp_path / "secrets.json"
        path.write_text(json.dumps({"traffic_key_number": 12345}))

        manager = SecretsManager(master_key=master_key, secrets_file=str(path))

        assert manager.get_secret("traffic_key_number", "default") == "default"

    def test_encryption_requires_master_key(self):
        with pytest.raises(ValueError):
            SecretsManager().encrypt_secret("value")
        with pytest.raises(ValueError):
            SecretsManager().decrypt_secret("value")

    @pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
    def test_unusable_file_is_ignored(self, tmp_path, content):
        path = tmp_path / "secrets.json"
        path.write_text(content)

        manager = SecretsManager(secrets_file=str(path))

        assert manager.get_secret("traffic_key_unusable", "default") == "default"

    def test_missing_file_is_ignored(self, tmp_path):
        manager = SecretsManager(secrets_file=str(tmp_path / "absent.json"))

        assert manager.get_secret("traffic_key_absent") is None
