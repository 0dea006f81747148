import copy
import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional

CONFIG_ENV_VAR = "ARMKIN_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "default.yml"


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def resolve_config_path(config_path: Optional[Path] = None) -> Path:
    """Explicit path, then $ARMKIN_CONFIG, then the packaged default.yml."""
    if config_path is not None:
        return Path(config_path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


class ConfigManager:
    def __init__(self, config_path: Optional[Path] = None, defaults: Optional[Dict[str, Any]] = None):
        self.config_path = resolve_config_path(config_path)
        self.defaults = defaults or {}
        self.config = self.load_config()

    def load_config(self) -> Dict[str, Any]:
        loaded: Dict[str, Any] = {}
        if self.config_path.exists():
            with open(self.config_path, 'r') as f:
                loaded = yaml.safe_load(f) or {}
        return _merge(self.defaults, loaded)

    def reload(self):
        self.config = self.load_config()

    def save_config(self):
        with open(self.config_path, 'w') as f:
            yaml.dump(self.config, f, default_flow_style=False, sort_keys=False)

    def get(self, key: str, default: Any = None) -> Any:
        keys = key.split('.')
        value = self.config
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def section(self, key: str) -> Dict[str, Any]:
        value = self.get(key, {})
        return value if isinstance(value, dict) else {}

    def set(self, key: str, value: Any):
        keys = key.split('.')
        config = self.config
        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]
        config[keys[-1]] = value
