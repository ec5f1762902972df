"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import yaml


DEFAULT_CONFIG: Dict[str, Any] = {
    'confluence': {
        'base_url': '',
        'auth_type': 'basic',
        'username': '',
        'api_token': '',
        'password': '',
        'verify_ssl': True
    },
    'convert': {
        'output': './output',
        'image_folder': 'assets',
        'download_images': True,
        'include_metadata': True,
        'output_name_template': None
    },
    'tree': {
        'max_depth': -1,
        'parallel': 3,
        'exclude': []
    },
    'logging': {
        'level': None,
        'file': None
    },
    'advanced': {
        'request_timeout': 30,
        'max_retries': 3,
        'retry_backoff_factor': 2
    }
}


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Load configuration from a YAML file on top of DEFAULT_CONFIG.

        Args:
            config_path: Path to YAML configuration file; None yields the defaults

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If the file does not contain a mapping
            yaml.YAMLError: If YAML parsing fails
        """
        config = copy.deepcopy(DEFAULT_CONFIG)
        if config_path is None:
            return config

        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            config_data = {}
        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a dictionary")

        config_data = cls._substitute_env_vars_recursive(config_data)
        return cls._deep_merge(config, config_data)

    @classmethod
    def validate(cls, config: Dict[str, Any], require_credentials: bool = True) -> None:
        """
        Validate configuration for required fields and correct values.

        Args:
            config: Configuration dictionary to validate
            require_credentials: Check base URL and auth settings

        Raises:
            ValueError: If validation fails
        """
        if require_credentials:
            cls._validate_required_field(config, 'confluence.base_url')
            cls._validate_url(get_nested(config, 'confluence.base_url'), 'confluence.base_url')

            auth_type = get_nested(config, 'confluence.auth_type', 'basic')
            if auth_type == 'basic':
                cls._validate_required_field(config, 'confluence.username')
                if not get_nested(config, 'confluence.api_token') and not get_nested(config, 'confluence.password'):
                    raise ValueError(
                        "Missing required configuration: confluence.api_token or confluence.password"
                    )
                for field in ('confluence.api_token', 'confluence.password'):
                    if get_nested(config, field):
                        cls._validate_required_field(config, field)
            elif auth_type == 'bearer':
                cls._validate_required_field(config, 'confluence.api_token')
            else:
                raise ValueError("confluence.auth_type must be 'basic' or 'bearer'")

        image_folder = get_nested(config, 'convert.image_folder', 'assets')
        if not isinstance(image_folder, str) or not image_folder.strip('/'):
            raise ValueError("convert.image_folder must be a non-empty relative path")
        if os.path.isabs(image_folder) or '..' in image_folder.split('/'):
            raise ValueError("convert.image_folder must stay inside the output directory")

        for field in ('convert.download_images', 'convert.include_metadata'):
            if not isinstance(get_nested(config, field, True), bool):
                raise ValueError(f"{field} must be a boolean")

        max_depth = get_nested(config, 'tree.max_depth', -1)
        if not isinstance(max_depth, int) or max_depth < -1:
            raise ValueError("tree.max_depth must be an integer >= -1")

        parallel = get_nested(config, 'tree.parallel', 3)
        if not isinstance(parallel, int) or parallel < 1:
            raise ValueError("tree.parallel must be a positive integer")

        exclude = get_nested(config, 'tree.exclude', [])
        if not isinstance(exclude, list):
            raise ValueError("tree.exclude must be a list of title patterns")

        timeout = get_nested(config, 'advanced.request_timeout', 30)
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ValueError("advanced.request_timeout must be a positive number")

        max_retries = get_nested(config, 'advanced.max_retries', 3)
        if not isinstance(max_retries, int) or max_retries < 0:
            raise ValueError("advanced.max_retries must be a non-negative integer")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: argparse namespace

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)
        for section in ('confluence', 'convert', 'tree', 'logging'):
            merged.setdefault(section, {})

        # Confluence settings
        if getattr(args, 'username', None):
            merged['confluence']['username'] = args.username
        if getattr(args, 'api_token', None):
            merged['confluence']['api_token'] = args.api_token

        # Conversion settings
        if getattr(args, 'output', None):
            merged['convert']['output'] = args.output
        if getattr(args, 'image_folder', None):
            merged['convert']['image_folder'] = args.image_folder
        if getattr(args, 'download_images', None) is not None:
            merged['convert']['download_images'] = args.download_images
        if getattr(args, 'include_metadata', None) is not None:
            merged['convert']['include_metadata'] = args.include_metadata
        if getattr(args, 'output_name_template', None):
            merged['convert']['output_name_template'] = args.output_name_template

        # Tree settings
        if getattr(args, 'depth', None) is not None:
            merged['tree']['max_depth'] = args.depth
        if getattr(args, 'parallel', None) is not None:
            merged['tree']['parallel'] = args.parallel
        if getattr(args, 'exclude', None):
            merged['tree']['exclude'] = list(args.exclude)

        if getattr(args, 'log_file', None):
            merged['logging']['file'] = args.log_file

        return merged

    @classmethod
    def _deep_merge(cls, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                base[key] = cls._deep_merge(base[key], value)
            else:
                base[key] = value
        return base

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        else:
            return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        def replace_match(match):
            env_value = os.getenv(match.group(1))
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @staticmethod
    def _validate_required_field(config: dict, field: str) -> None:
        """Validate that a required field exists and has a value."""
        value = get_nested(config, field)
        if value is None or value == '':
            raise ValueError(f"Missing required configuration: {field}")

        # Leftover ${VAR} means the variable was not set
        if isinstance(value, str):
            match = ConfigLoader.ENV_VAR_PATTERN.search(value)
            if match:
                raise ValueError(
                    f"Configuration field '{field}' contains unsubstituted environment variable: {value}. "
                    f"Please set the {match.group(1)} environment variable or provide a value in config file."
                )

    @staticmethod
    def _validate_url(url: str, field_name: str) -> None:
        parsed = urlparse(url)
        if parsed.scheme not in ('http', 'https'):
            raise ValueError(f"{field_name} must use http or https scheme: {url}")
        if not parsed.netloc:
            raise ValueError(f"{field_name} missing hostname: {url}")


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "confluence.base_url")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    value = config
    for key in path.split('.'):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value


__all__ = ['ConfigLoader', 'DEFAULT_CONFIG', 'get_nested']
