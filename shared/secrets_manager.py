"""
Secrets lookup for the traffic cache layer.
"""

import os
import json
import base64
from typing import Dict, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from shared.logging import get_logger

logger = get_logger("shared.secrets")


class SecretsManager:
    """
    Resolves named secrets from the environment or a JSON secrets file.

    Values in the secrets file are Fernet-encrypted when a master key is
    configured and stored as plain text otherwise.
    """

    def __init__(self, master_key: Optional[str] = None, secrets_file: Optional[str] = None):
        """
        Initialize the secrets manager.

        Args:
            master_key: Master key for encryption/decryption of file secrets
            secrets_file: Path to a JSON document mapping names to secrets
        """
        self.master_key = master_key
        self.secrets_file = secrets_file
        self._fernet = self._create_fernet() if master_key else None

    def _create_fernet(self) -> Fernet:
        """
        Create a Fernet cipher instance.

        Returns:
            Fernet cipher instance
        """
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=b'daylight_traffic_salt',
            iterations=100000,
        )
        key = base64.urlsafe_b64encode(kdf.derive(self.master_key.encode()))
        return Fernet(key)

    def encrypt_secret(self, secret: str) -> str:
        """
        Encrypt a secret.

        Args:
            secret: Secret to encrypt

        Returns:
            Encrypted secret
        """
        if self._fernet is None:
            raise ValueError("Master key is required to encrypt secrets")
        encrypted = self._fernet.encrypt(secret.encode())
        return base64.urlsafe_b64encode(encrypted).decode()

    def decrypt_secret(self, encrypted_secret: str) -> str:
        """
        Decrypt a secret.

        Args:
            encrypted_secret: Encrypted secret

        Returns:
            Decrypted secret
        """
        if self._fernet is None:
            raise ValueError("Master key is required to decrypt secrets")
        decoded = base64.urlsafe_b64decode(encrypted_secret.encode())
        return self._fernet.decrypt(decoded).decode()

    def get_secret(self, name: Optional[str], default: Optional[str] = None) -> Optional[str]:
        """
        Get a secret by name.

        The environment wins over the secrets file. Unreadable files and
        undecryptable values are logged and treated as absent.

        Args:
            name: Secret name (environment variable name or file key)
            default: Default value if secret not found

        Returns:
            Secret value or default
        """
        if not name:
            return default

        secret = os.getenv(name) or os.getenv(name.upper())
        if secret:
            return secret

        file_secrets = self._load_file()
        if name not in file_secrets:
            return default

        value = file_secrets[name]
        if not isinstance(value, str):
            logger.warning("Secret value is not a string", name=name, value_type=type(value).__name__)
            return default

        if self._fernet is None:
            return value

        try:
            return self.decrypt_secret(value)
        except (InvalidToken, ValueError) as e:
            logger.warning("Failed to decrypt secret", name=name, error=str(e))
            return default

    def _load_file(self) -> Dict[str, str]:
        """Read the secrets file, returning an empty mapping when unusable."""
        if not self.secrets_file or not os.path.exists(self.secrets_file):
            return {}

        try:
            with open(self.secrets_file, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Failed to read secrets file", path=self.secrets_file, error=str(e))
            return {}

        if not isinstance(data, dict):
            logger.warning("Secrets file is not a JSON object", path=self.secrets_file)
            return {}
        return data
