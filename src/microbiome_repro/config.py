# ===================================== IMPORTS ====================================== #

# Standard Library Imports
from pathlib import Path
from typing import Any, Dict, Union

# Third-Party Imports
import yaml

# Local Imports
from microbiome_repro import constants

# ==================================== FUNCTIONS ===================================== #

def _is_relative_path(value: str) -> bool:
    return value.startswith("./") or value.startswith("../")


def _resolve(value: Any, config_dir: Path) -> Any:
    if isinstance(value, str) and _is_relative_path(value):
        return (config_dir / value).resolve()
    if isinstance(value, dict):
        return resolve_relative_paths(value, config_dir)
    if isinstance(value, list):
        return [_resolve(item, config_dir) for item in value]
    return value


def resolve_relative_paths(config: Dict, config_dir: Path) -> Dict:
    """Converts relative paths ("./", "../") anywhere in the configuration,
    including inside lists, to absolute paths based on the directory of the
    config file."""
    for key, value in config.items():
        config[key] = _resolve(value, config_dir)
    return config


def get_config(
    config_path: Union[str, Path] = constants.DEFAULT_CONFIG_PATH
) -> Dict:
    """
    Load the YAML run configuration.

    Args:
        config_path: Path to the YAML file.

    Returns:
        Configuration dict with relative paths resolved against the directory
        holding ``config_path``. An empty file gives an empty dict.
    """
    with open(config_path, "r") as file:
        config = yaml.safe_load(file) or {}

    config_dir = Path(config_path).resolve().parent
    return resolve_relative_paths(config, config_dir)
