"""Stored tdwf profiles.

Profiles live in ``$TDWF_HOME/config.json`` (default ``~/.tdwf``). The file is
kept owner-only. When ``TDWF_CONFIG_ENCRYPTION_KEY`` is set, each profile's
``api_key`` is written as an ``enc:``-prefixed Fernet token; the variable may
hold a Fernet key or any passphrase.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import os
import stat
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

TDWF_DIR = os.path.expanduser(os.getenv("TDWF_HOME", "~/.tdwf"))
CONFIG_PATH = os.path.join(TDWF_DIR, "config.json")

ENCRYPTION_KEY_ENV = "TDWF_CONFIG_ENCRYPTION_KEY"
ENCRYPTED_PREFIX = "enc:"
_PASSPHRASE_SALT = b"tdwf-config"
_PASSPHRASE_ITERATIONS = 390_000


class EncryptedConfigError(RuntimeError):
    """The stored API key is encrypted and cannot be decrypted."""


@lru_cache(maxsize=4)
def _fernet_for(secret: str) -> Fernet:
    raw = secret.encode("utf-8")
    try:
        return Fernet(raw)
    except ValueError:
        # not a Fernet key: treat it as a passphrase
        derived = hashlib.pbkdf2_hmac(
            "sha256", raw, _PASSPHRASE_SALT, _PASSPHRASE_ITERATIONS, dklen=32
        )
        return Fernet(base64.urlsafe_b64encode(derived))


def _cipher() -> Fernet | None:
    secret = os.getenv(ENCRYPTION_KEY_ENV, "").strip()
    return _fernet_for(secret) if secret else None


def encrypt_field(value: str | None) -> str | None:
    """Encrypt ``value`` if an encryption key is configured."""

    cipher = _cipher()
    if not value or cipher is None:
        return value
    return ENCRYPTED_PREFIX + cipher.encrypt(value.encode("utf-8")).decode("ascii")


def decrypt_field(value: str | None) -> str | None:
    """Reverse :func:`encrypt_field`; plain values pass through unchanged."""

    if not value or not value.startswith(ENCRYPTED_PREFIX):
        return value
    cipher = _cipher()
    if cipher is None:
        raise EncryptedConfigError(
            f"Encrypted tdwf configuration detected but {ENCRYPTION_KEY_ENV} is not set."
        )
    try:
        return cipher.decrypt(value[len(ENCRYPTED_PREFIX) :].encode("ascii")).decode("utf-8")
    except InvalidToken as exc:
        raise EncryptedConfigError(
            f"Unable to decrypt tdwf configuration; verify {ENCRYPTION_KEY_ENV}."
        ) from exc


def _restrict_to_owner(path: Path) -> None:
    if os.name == "nt":
        return
    mode = stat.S_IMODE(path.stat().st_mode)
    if mode & (stat.S_IRWXG | stat.S_IRWXO):
        logger.warning("Config file %s was readable by other users; resetting to 0o600", path)
    if mode != 0o600:
        path.chmod(0o600)


@dataclass
class Profile:
    name: str
    api_key: str | None = None
    region: str | None = None
    endpoint: str | None = None

    @classmethod
    def from_stored(cls, name: str, data: dict[str, Any]) -> Profile:
        return cls(
            name=name,
            api_key=decrypt_field(data.get("api_key")),
            region=data.get("region"),
            endpoint=data.get("endpoint"),
        )

    def to_stored(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "api_key": encrypt_field(self.api_key),
            "region": self.region,
            "endpoint": self.endpoint,
        }


@dataclass
class ConfigData:
    default_profile: str | None = None
    profiles: dict[str, Profile] = field(default_factory=dict)

    def current_profile(self) -> Profile | None:
        if not self.default_profile:
            return None
        return self.profiles.get(self.default_profile)


class ConfigStore:
    """Load and save :class:`ConfigData` as JSON at ``path``."""

    def __init__(self, path: str | os.PathLike[str] | None = None) -> None:
        self.path = Path(path or CONFIG_PATH)

    def load(self) -> ConfigData:
        if not self.path.exists():
            return ConfigData()
        _restrict_to_owner(self.path)
        raw = json.loads(self.path.read_text(encoding="utf-8"))
        profiles = {
            name: Profile.from_stored(name, data)
            for name, data in (raw.get("profiles") or {}).items()
        }
        return ConfigData(default_profile=raw.get("default"), profiles=profiles)

    def save(self, cfg: ConfigData) -> None:
        payload = {
            "default": cfg.default_profile,
            "profiles": {name: profile.to_stored() for name, profile in cfg.profiles.items()},
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
        tmp.replace(self.path)
        _restrict_to_owner(self.path)

    def add_or_update_profile(self, profile: Profile, *, set_default: bool = False) -> ConfigData:
        """Store ``profile``; the first profile saved becomes the default."""

        cfg = self.load()
        cfg.profiles[profile.name] = profile
        if set_default or not cfg.default_profile:
            cfg.default_profile = profile.name
        self.save(cfg)
        return cfg

    def set_default_profile(self, name: str) -> ConfigData:
        cfg = self.load()
        if name not in cfg.profiles:
            raise KeyError(f"Profile '{name}' not found")
        cfg.default_profile = name
        self.save(cfg)
        return cfg


__all__ = [
    "CONFIG_PATH",
    "ConfigData",
    "ConfigStore",
    "EncryptedConfigError",
    "Profile",
    "TDWF_DIR",
    "decrypt_field",
    "encrypt_field",
]
