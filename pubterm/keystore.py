"""Secret storage for the long-lived API secret."""
from __future__ import annotations

import os
from typing import Protocol

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from .errors import ConfigurationError

SERVICE_NAME = "pub"
KEY_SECRET_KEY = "secret_key"
SECRET_ENV_VAR = "PUB_SECRET_KEY"


class SecretStore(Protocol):
    def get(self, service: str, key: str) -> str | None: ...


class KeyringStore:
    """OS keychain via the keyring library."""

    def get(self, service: str, key: str) -> str | None:
        try:
            return keyring.get_password(service, key)
        except KeyringError as exc:
            raise ConfigurationError(f"failed to retrieve secret: {exc}") from exc

    def set(self, service: str, key: str, value: str) -> None:
        try:
            keyring.set_password(service, key, value)
        except KeyringError as exc:
            raise ConfigurationError(f"failed to store secret: {exc}") from exc

    def delete(self, service: str, key: str) -> bool:
        """Remove the entry; False when nothing was stored."""
        try:
            keyring.delete_password(service, key)
        except PasswordDeleteError:
            return False
        except KeyringError as exc:
            raise ConfigurationError(f"failed to clear secret: {exc}") from exc
        return True


class EnvSecretStore:
    """Serves the secret key from PUB_SECRET_KEY when it is set."""

    def __init__(self, env_var: str = SECRET_ENV_VAR) -> None:
        self._env_var = env_var

    def get(self, service: str, key: str) -> str | None:
        if (service, key) != (SERVICE_NAME, KEY_SECRET_KEY):
            return None
        return os.getenv(self._env_var) or None


class ChainedStore:
    def __init__(self, *stores: SecretStore) -> None:
        self._stores = stores

    def get(self, service: str, key: str) -> str | None:
        for store in self._stores:
            value = store.get(service, key)
            if value:
                return value
        return None


def default_store() -> SecretStore:
    return ChainedStore(EnvSecretStore(), KeyringStore())


def read_secret(store: SecretStore) -> str:
    secret = store.get(SERVICE_NAME, KEY_SECRET_KEY)
    if not secret:
        raise ConfigurationError(
            "CLI not configured: store a secret key in the keyring "
            f"or set {SECRET_ENV_VAR}"
        )
    return secret
