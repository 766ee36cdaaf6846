"""
Configuration sources for FileLens.

JSON configuration files are merged in order (later files win), and the
legacy environment variables used by earlier deployments are mapped onto
their nested settings keys.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Union

from loguru import logger

# Legacy variable -> (section, field)
LEGACY_ENV_VARS = {
    "OLLAMA_URL": ("llm", "base_url"),
    "OLLAMA_MODEL": ("llm", "model"),
    "INDEXING_WORKERS": ("indexing", "concurrency"),
}


def find_config_files(project_dir: Path | None = None) -> List[Path]:
    """Candidate config files, lowest precedence first."""
    if project_dir is None:
        project_dir = Path.cwd()
    return [
        Path.home() / ".filelens" / "config.json",
        project_dir / ".filelens.json",
    ]


def load_json_files(config_files: List[Union[str, Path]]) -> Dict[str, Any]:
    """Load and deep-merge JSON config files, skipping missing or broken ones."""
    merged: Dict[str, Any] = {}
    for config_file in (Path(f) for f in config_files):
        if not config_file.exists():
            continue
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to load config file {config_file}: {e}")
            continue
        if not isinstance(data, dict):
            logger.warning(f"Ignoring config file {config_file}: top level is not an object")
            continue
        deep_merge(merged, data)
    return merged


def legacy_env_values() -> Dict[str, Any]:
    """Nested settings taken from legacy environment variables."""
    values: Dict[str, Any] = {}
    for env_name, (section, field) in LEGACY_ENV_VARS.items():
        raw = os.getenv(env_name)
        if raw:
            values.setdefault(section, {})[field] = raw
    return values


def deep_merge(base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``update`` into ``base`` in place and return it."""
    for key, value in update.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base
