"""
Configuration management for studentmath.

This module provides functionality for managing configuration,
including loading from environment variables, files and default values.
"""

import os
import json
import logging
from typing import Dict, Optional, Any
from copy import deepcopy
import yaml

# Set up logging
logger = logging.getLogger(__name__)


def to_int(value: Any) -> Optional[int]:
    """
    Convert a value to an integer.

    Args:
        value: Value to convert

    Returns:
        Integer value, or None if conversion failed
    """
    if value is None:
        return None

    try:
        return int(value)
    except (ValueError, TypeError):
        return None


def to_bool(value: Any) -> Optional[bool]:
    """
    Convert a value to a boolean.

    Args:
        value: Value to convert

    Returns:
        Boolean value, or None if conversion failed
    """
    if value is None:
        return None

    if isinstance(value, bool):
        return value

    if isinstance(value, (int, float)):
        return bool(value)

    if isinstance(value, str):
        value = value.lower().strip()
        if value in ('true', 'yes', 'y', '1', 't'):
            return True
        if value in ('false', 'no', 'n', '0', 'f'):
            return False

    return None


def env_int(name: str, default: Optional[int]) -> Optional[int]:
    """
    Read an integer environment variable.

    Args:
        name: Environment variable name
        default: Value used when the variable is unset

    Returns:
        Integer value, or default if unset

    Raises:
        ValueError: If the variable is set but is not an integer
    """
    if name not in os.environ:
        return default

    value = to_int(os.environ[name])
    if value is None:
        raise ValueError(f"Environment variable {name} must be an integer, got {os.environ[name]!r}")
    return value


def read_config_file(filepath: str) -> Dict[str, Any]:
    """
    Read a JSON or YAML configuration file.

    Args:
        filepath: Path to configuration file

    Returns:
        Configuration dictionary
    """
    if filepath.endswith('.json'):
        with open(filepath, 'r') as f:
            return json.load(f)
    elif filepath.endswith('.yaml') or filepath.endswith('.yml'):
        with open(filepath, 'r') as f:
            return yaml.safe_load(f) or {}
    else:
        raise ValueError(f"Unsupported configuration file format: {filepath}")


class Config:
    """
    Configuration holder for studentmath.
    """

    def __init__(self, overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration.

        Args:
            overrides: Optional configuration overrides
        """
        self._config = {}
        self._initialized = False

        # Load configuration
        self.load_config(overrides)

    def load_config(self, overrides: Optional[Dict[str, Any]] = None) -> None:
        """
        Load configuration from all sources.

        Args:
            overrides: Optional configuration overrides
        """
        # Start with default configuration
        config = self._get_defaults()

        # Apply environment variables
        config = self._apply_env_vars(config)

        # Apply overrides
        if overrides:
            config = self._apply_overrides(config, overrides)

        self._config = config
        self._initialized = True

        logger.debug("Configuration loaded")

    def _get_defaults(self) -> Dict[str, Any]:
        """
        Get default configuration values.

        Returns:
            Default configuration
        """
        return {
            # Input dataset
            'data': {
                'path': 'data/students.json',
                'max-upload-bytes': 5 * 1024 * 1024
            },

            # Artifact output
            'output': {
                'dir': 'analysis'
            },

            # Engines
            'clustering': {
                'k': 3,
                'iterations': 20,
                'seed': None            # None means entropy seeded
            },
            'regression': {
                'strict': False         # raise on singular pivots instead of epsilon
            },
            'correlation': {
                'precision': 3
            },

            # Server
            'server': {
                'port': 8080,
                'host': 'localhost'
            },

            # Logging
            'logging': {
                'level': 'info'
            }
        }

    def _apply_env_vars(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply environment variables to configuration.

        Args:
            config: Current configuration

        Returns:
            Updated configuration
        """
        # Make a copy
        config = deepcopy(config)

        # Data and output
        config['data']['path'] = os.environ.get('STUDENTS_DATA_PATH', config['data']['path'])
        config['data']['max-upload-bytes'] = env_int('MAX_UPLOAD_BYTES', config['data']['max-upload-bytes'])
        config['output']['dir'] = os.environ.get('ANALYSIS_OUT_DIR', config['output']['dir'])

        # Clustering
        config['clustering']['k'] = env_int('KMEANS_K', config['clustering']['k'])
        config['clustering']['iterations'] = env_int('KMEANS_ITERATIONS', config['clustering']['iterations'])
        config['clustering']['seed'] = env_int('KMEANS_SEED', config['clustering']['seed'])

        # Regression
        strict = to_bool(os.environ.get('REGRESSION_STRICT'))
        if strict is not None:
            config['regression']['strict'] = strict

        # Server
        config['server']['port'] = env_int('PORT', config['server']['port'])
        config['server']['host'] = os.environ.get('HOST', config['server']['host'])

        # Logging
        config['logging']['level'] = os.environ.get('LOG_LEVEL', config['logging']['level']).lower()

        return config

    def _apply_overrides(self, config: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply configuration overrides.

        Args:
            config: Current configuration
            overrides: Configuration overrides

        Returns:
            Updated configuration
        """
        # Make a copy
        config = deepcopy(config)

        # Helper function for deep update
        def deep_update(d, u):
            for k, v in u.items():
                if isinstance(v, dict) and k in d and isinstance(d[k], dict):
                    d[k] = deep_update(d[k], v)
                else:
                    d[k] = v
            return d

        return deep_update(config, overrides)

    def get(self, path: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            path: Configuration path (dot-separated)
            default: Default value if not found

        Returns:
            Configuration value, or default if not found
        """
        if not self._initialized:
            self.load_config()

        value = self._config

        for component in path.split('.'):
            if isinstance(value, dict) and component in value:
                value = value[component]
            else:
                return default

        return value

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value.

        Args:
            path: Configuration path (dot-separated)
            value: Configuration value
        """
        if not self._initialized:
            self.load_config()

        components = path.split('.')
        config = self._config

        for component in components[:-1]:
            if component not in config:
                config[component] = {}

            config = config[component]

        config[components[-1]] = value

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert configuration to a dictionary.

        Returns:
            Configuration dictionary
        """
        if not self._initialized:
            self.load_config()

        return deepcopy(self._config)

    def save_to_file(self, filepath: str) -> None:
        """
        Save configuration to a file.

        Args:
            filepath: Path to save configuration
        """
        if not self._initialized:
            self.load_config()

        if filepath.endswith('.json'):
            with open(filepath, 'w') as f:
                json.dump(self._config, f, indent=2)
        elif filepath.endswith('.yaml') or filepath.endswith('.yml'):
            with open(filepath, 'w') as f:
                yaml.dump(self._config, f, default_flow_style=False)
        else:
            raise ValueError(f"Unsupported file format: {filepath}")

    def load_from_file(self, filepath: str) -> None:
        """
        Load configuration from a file.

        Args:
            filepath: Path to load configuration from
        """
        self.load_config(read_config_file(filepath))


class ConfigManager:
    """
    Singleton manager for configuration.
    """

    _instance = None

    @classmethod
    def get_config(cls, overrides: Optional[Dict[str, Any]] = None) -> Config:
        """
        Get the configuration instance.

        Args:
            overrides: Optional configuration overrides

        Returns:
            Config instance
        """
        if cls._instance is None:
            cls._instance = Config(overrides)
        elif overrides:
            cls._instance.load_config(overrides)

        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the cached configuration instance."""
        cls._instance = None
