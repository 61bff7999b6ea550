"""Tests for VaultConfig and the recent-vaults list."""

from pathlib import Path

import pytest

from pwdvault import config, vault_manager
from pwdvault.config import VaultConfig
from pwdvault.exceptions import InvalidParameters


class TestVaultConfig:

    def test_defaults(self):
        cfg = VaultConfig()
        assert cfg.iterations == config.ARGON2_TIME_COST
        assert cfg.container_path.name == config.DEFAULT_VAULT_FILE

    def test_from_mapping_accepts_camel_case_aliases(self, tmp_path):
        cfg = VaultConfig.from_mapping({'iterations': '5', 'containerPath': str(tmp_path / "v.pwdv")})
        assert cfg.iterations == 5
        assert cfg.container_path == tmp_path / "v.pwdv"

    def test_unknown_option_rejected(self):
        with pytest.raises(InvalidParameters):
            VaultConfig.from_mapping({'iteratons': 3})

    @pytest.mark.parametrize("options", [
        {'iterations': 0},
        {'parallelism': 0},
        {'memory_cost': 4, 'parallelism': 1},
        {'iterations': 'many'},
    ])
    def test_invalid_values(self, options):
        with pytest.raises(InvalidParameters):
            VaultConfig.from_mapping(options)

    def test_from_env(self, tmp_path):
        env = {config.ENV_CONTAINER_PATH: str(tmp_path / "env.pwdv"), config.ENV_ITERATIONS: "2"}
        cfg = VaultConfig.from_env(env, memory_cost=2048)
        assert cfg.container_path == Path(tmp_path / "env.pwdv")
        assert cfg.iterations == 2
        assert cfg.memory_cost == 2048


class TestRecentVaults:

    def test_most_recent_first_and_unique(self, tmp_path):
        a = tmp_path / "a.pwdv"
        b = tmp_path / "b.pwdv"
        a.write_bytes(b"x")
        b.write_bytes(b"x")
        home = tmp_path / "home"
        vault_manager.save_recent_vault_path(a, home)
        vault_manager.save_recent_vault_path(b, home)
        vault_manager.save_recent_vault_path(a, home)
        assert vault_manager.get_recent_vault_paths(home) == [str(a), str(b)]

    def test_missing_files_are_dropped(self, tmp_path):
        a = tmp_path / "a.pwdv"
        a.write_bytes(b"x")
        home = tmp_path / "home"
        vault_manager.save_recent_vault_path(a, home)
        a.unlink()
        assert vault_manager.get_recent_vault_paths(home) == []

    def test_limited_length(self, tmp_path):
        home = tmp_path / "home"
        for i in range(config.MAX_RECENT_VAULTS + 3):
            path = tmp_path / f"{i}.pwdv"
            path.write_bytes(b"x")
            vault_manager.save_recent_vault_path(path, home)
        recent = vault_manager.get_recent_vault_paths(home)
        assert len(recent) == config.MAX_RECENT_VAULTS
        assert recent[0].endswith(f"{config.MAX_RECENT_VAULTS + 2}.pwdv")
