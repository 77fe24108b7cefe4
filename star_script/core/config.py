"""
Configuration management for Star Script
"""
import copy
import yaml
from pathlib import Path
from loguru import logger


class Config:
    """YAML-backed settings with dot-notation access"""

    def __init__(self, config_file: str = None):
        self.config_file = Path(config_file) if config_file else None
        self._config = self._default_config()
        self._load_config()

    def _load_config(self):
        """Merge the configuration file over the defaults, if one exists"""
        if self.config_file is None or not self.config_file.exists():
            return

        with open(self.config_file, 'r') as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration root must be a mapping: {self.config_file}")

        _deep_merge(self._config, loaded)
        logger.debug(f"Loaded configuration from {self.config_file}")

    def save(self, config_file: str = None):
        """Save configuration to file"""
        target = Path(config_file) if config_file else self.config_file
        if target is None:
            raise ValueError("No configuration file to save to")

        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, 'w') as f:
            yaml.dump(self._config, f, default_flow_style=False)
        self.config_file = target
        logger.info(f"Saved configuration to {target}")

    @staticmethod
    def _default_config() -> dict:
        """Return default configuration"""
        return {
            'app': {
                'name': 'Star Script',
                'log_level': 'INFO',
                'log_file': None
            },
            'runtime': {
                'op_limit': 1000000,
                'series_length': 200,
                'base_price': 100.0,
                'price_step': 0.5
            },
            'strategy': {
                'commission_percent': 0.0,
                'default_qty': 1
            },
            'conformance': {
                'fixtures_dir': 'tests/fixtures',
                'report_path': 'parser-diff.json'
            }
        }

    def get(self, key: str, default=None):
        """Get a configuration value using dot notation (e.g., 'runtime.op_limit')"""
        keys = key.split('.')
        value = self._config
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
        return value if value is not None else default

    def set(self, key: str, value):
        """Set a configuration value using dot notation"""
        keys = key.split('.')
        config = self._config
        for k in keys[:-1]:
            config = config.setdefault(k, {})
        config[keys[-1]] = value

    def as_dict(self) -> dict:
        return copy.deepcopy(self._config)


def _deep_merge(base: dict, override: dict):
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
