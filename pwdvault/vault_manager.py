import os
from pathlib import Path
from typing import List, Optional, Union

from . import config


def _recent_file(config_dir: Optional[Union[str, os.PathLike]]) -> Path:
    directory = Path(config_dir) if config_dir is not None else config.default_config_dir()
    return directory / config.RECENT_VAULTS_FILE


def get_recent_vault_paths(config_dir=None) -> List[str]:
    """
    Loads the list of recent vault paths from the configuration file.
    Filters out paths that no longer exist.
    """
    recent_file = _recent_file(config_dir)

    recent_paths = []
    if recent_file.exists():
        with open(recent_file, 'r', encoding='utf-8') as f:
            for line in f:
                path = line.strip()
                if path and os.path.exists(path) and path not in recent_paths:
                    recent_paths.append(path)
    return recent_paths


def save_recent_vault_path(path, config_dir=None) -> List[str]:
    """
    Saves a vault path to the front of the recent vaults list.
    Ensures uniqueness and keeps the list limited to MAX_RECENT_VAULTS.
    """
    recent_file = _recent_file(config_dir)
    recent_file.parent.mkdir(parents=True, exist_ok=True)
    path = os.path.abspath(path)

    recent = get_recent_vault_paths(config_dir)

    if path in recent:
        recent.remove(path)
    recent.insert(0, path)
    recent = recent[:config.MAX_RECENT_VAULTS]

    with open(recent_file, 'w', encoding='utf-8') as f:
        for p in recent:
            f.write(p + '\n')
    return recent
