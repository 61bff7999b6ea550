"""
Configuration constants for the pwdvault password manager core.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from .exceptions import InvalidParameters

# Application Metadata
APP_NAME = "pwdvault"
APP_VERSION = "1.0.0"

# Security Settings
SALT_SIZE = 16  # Argon2id salt, stored in the container header.
KEY_SIZE = 32  # AES-256
NONCE_SIZE = 12  # 96-bit GCM nonce
TAG_SIZE = 16  # 128-bit GCM tag
ARGON2_TIME_COST = 3  # "iterations" in VaultConfig
ARGON2_MEMORY_COST = 65536  # KiB (64 MB)
ARGON2_PARALLELISM = 4

# Container Format
CONTAINER_MAGIC = b"PWDV"
CONTAINER_VERSION = 1
RECORD_FORMAT_VERSION = 1

# Password Generator Settings
PASSWORD_MIN_LENGTH = 12
PASSWORD_GENERATOR_DEFAULT_LENGTH = 16
PASSWORD_GENERATOR_MIN_LENGTH = 8
PASSWORD_GENERATOR_MAX_LENGTH = 128
PASSWORD_GENERATOR_AMBIGUOUS_CHARS = "0O1lI"

# Import/Export Settings
CSV_HEADER_MAPPINGS = {
    'name': ['name', 'site', 'website', 'title'],
    'username': ['username', 'user', 'login', 'email', 'account'],
    'password': ['password', 'pass', 'pwd'],
    'url': ['url', 'website', 'web site', 'link'],
    'notes': ['notes', 'note', 'comments', 'description'],
}
CSV_EXPORT_HEADER = ['name', 'username', 'password', 'url', 'notes']

# Vault Management Settings
MAX_RECENT_VAULTS = 10
CONFIG_DIR_NAME = ".pwdvault"
DEFAULT_VAULT_FILE = "vault.pwdv"
RECENT_VAULTS_FILE = "recent_vaults.txt"

# Environment overrides
ENV_CONTAINER_PATH = "PWDVAULT_CONTAINER"
ENV_ITERATIONS = "PWDVAULT_ITERATIONS"
ENV_PASSPHRASE = "PWDVAULT_PASSPHRASE"

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'


def default_config_dir() -> Path:
    """Directory holding the default vault and the recent-vaults list."""
    return Path(os.path.expanduser("~")) / CONFIG_DIR_NAME


def default_container_path() -> Path:
    return default_config_dir() / DEFAULT_VAULT_FILE


@dataclass(frozen=True)
class VaultConfig:
    """
    Options recognized by a Session.

    The KDF cost settings are not written to the container, so a vault has to
    be unlocked with the same ``iterations``, ``memory_cost`` and
    ``parallelism`` it was created with.
    """
    container_path: Path = field(default_factory=default_container_path)
    iterations: int = ARGON2_TIME_COST
    memory_cost: int = ARGON2_MEMORY_COST
    parallelism: int = ARGON2_PARALLELISM

    def __post_init__(self):
        object.__setattr__(self, 'container_path', Path(self.container_path))
        if self.iterations < 1:
            raise InvalidParameters(f"iterations must be positive, got {self.iterations}")
        if self.parallelism < 1:
            raise InvalidParameters(f"parallelism must be positive, got {self.parallelism}")
        # Argon2 requires at least 8 KiB per lane.
        if self.memory_cost < 8 * self.parallelism:
            raise InvalidParameters(
                f"memory_cost must be at least {8 * self.parallelism} KiB, got {self.memory_cost}"
            )

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> 'VaultConfig':
        """
        Build a config from a plain mapping.

        Accepts both ``containerPath`` and ``container_path``; unknown keys are
        rejected so that typos do not silently fall back to defaults.
        """
        aliases = {'containerPath': 'container_path', 'memoryCost': 'memory_cost'}
        known = {'container_path', 'iterations', 'memory_cost', 'parallelism'}
        kwargs = {}
        for key, value in options.items():
            name = aliases.get(key, key)
            if name not in known:
                raise InvalidParameters(f"Unknown configuration option: {key}")
            kwargs[name] = value
        for name in ('iterations', 'memory_cost', 'parallelism'):
            if name in kwargs:
                try:
                    kwargs[name] = int(kwargs[name])
                except (TypeError, ValueError) as e:
                    raise InvalidParameters(f"{name} must be an integer") from e
        return cls(**kwargs)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> 'VaultConfig':
        """Build a config from PWDVAULT_* environment variables."""
        environ = os.environ if environ is None else environ
        options = {}
        if environ.get(ENV_CONTAINER_PATH):
            options['container_path'] = environ[ENV_CONTAINER_PATH]
        if environ.get(ENV_ITERATIONS):
            options['iterations'] = environ[ENV_ITERATIONS]
        options.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_mapping(options)
