"""YAML settings for fairgrade.

Settings live in ``config/`` at the project root: ``default.yaml`` ships with
the code and ``local.yaml`` (not committed) holds API keys and per-machine
overrides. ``FAIRGRADE_CONFIG_DIR`` points the loaders somewhere else, which
is how tests and deployments supply their own settings.
"""

import copy
import os
from typing import Any
import logging

import yaml

LOG = logging.getLogger(__name__)

ConfigType = dict[str, Any]

_MISSING = object()


def _merge(base: Any, override: Any) -> Any:
    """Overlay ``override`` on ``base``; nested sections merge key by key, anything else is replaced."""
    if not (isinstance(base, dict) and isinstance(override, dict)):
        return copy.deepcopy(override)
    merged = copy.deepcopy(base)
    for key, value in override.items():
        merged[key] = _merge(base[key], value) if key in base else copy.deepcopy(value)
    return merged


def load_configs(*paths: str) -> ConfigType:
    """Read the given YAML files in order, later files overriding earlier ones.

    Missing files are skipped with a warning so an absent ``local.yaml`` is fine.

    Raises:
        TypeError: If a file's top level is not a mapping
        ValueError: If none of the files produced any settings
    """
    settings: ConfigType = {}
    for path in paths:
        if not os.path.isfile(path):
            LOG.warning("Skipping missing config file %r", path)
            continue
        LOG.info("loading config from %s", path)
        with open(path, "r") as f:
            loaded = yaml.safe_load(f)
        if not isinstance(loaded, dict):
            raise TypeError(f"YAML config file {path} must be a dict")
        settings = _merge(settings, loaded)

    if not settings:
        raise ValueError("No configs loaded")
    return settings


def _config_dir() -> str:
    # fairgrade/libs -> fairgrade -> project root
    package_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    return os.environ.get("FAIRGRADE_CONFIG_DIR", os.path.join(os.path.dirname(package_dir), "config"))


def load_default_configs() -> ConfigType:
    """Shipped defaults plus ``local.yaml`` overrides."""
    config_dir = _config_dir()
    return load_configs(os.path.join(config_dir, "default.yaml"),
                        os.path.join(config_dir, "local.yaml"))


def load_all_configs() -> ConfigType:
    """Every ``*.yaml``/``*.yml`` file in the config directory, merged in name order.

    This is what the command-line tools use, so extra files such as
    ``school.yaml`` can layer settings without touching the defaults.
    """
    config_dir = _config_dir()
    if not os.path.exists(config_dir):
        raise ValueError(f"Config directory not found: {config_dir}")

    yaml_files = [
        os.path.join(config_dir, name)
        for name in sorted(os.listdir(config_dir))
        if name.endswith(('.yaml', '.yml'))
    ]
    if not yaml_files:
        raise ValueError("No YAML files found in config directory")

    LOG.info("Loading configs from: %s", yaml_files)
    return load_configs(*yaml_files)


def get_config(key: str, config: ConfigType = None, default: Any = _MISSING) -> Any:
    """Look up a setting such as ``"grading.call_timeout"``.

    Grading code passes a ``default`` for optional settings so a sparse
    ``local.yaml`` or a test config dict works. Without one, an absent key is
    an error. When ``config`` is None the default files are loaded.

    Raises:
        KeyError: If the key is absent (or crosses a non-mapping value) and no default was given
    """
    if config is None:
        config = load_default_configs()

    parts = key.split('.')
    value = config
    for depth, part in enumerate(parts):
        if not isinstance(value, dict) or part not in value:
            if default is not _MISSING:
                return default
            if not isinstance(value, dict):
                raise KeyError(f"Cannot access {part} in non-dict value at {'.'.join(parts[:depth])}")
            raise KeyError(f"Key {key} not found in configuration")
        value = value[part]
    return value
