#!/usr/bin/env python3
"""
Settings loader for Kakanest.
Supports configuration from kakanest.yml, kakanest.yaml, or kakanest.json files.
"""

import os
import json
import yaml
from typing import Dict, Any, Optional


class KakanestSettings:
    """Load and manage Kakanest configuration settings."""

    # Default configuration
    DEFAULT_SETTINGS = {
        'output': 'output',
        'content': 'assets/blog',
        'templates': 'assets/templates',
        'static': 'assets/static',
        'images': 'assets/blog/images',
        'site_title': 'Kakanest',
        'site_url': None,
        'site_description': None,
        'author_email': None,
        'theme': 'one-dark',
        'workers': None,
        'minify': False,
        'webp': False,
        'log_dir': 'logs',
    }

    # Config file names to look for (in order of preference)
    CONFIG_FILES = ['kakanest.yml', 'kakanest.yaml', 'kakanest.json']

    def __init__(self, config_dir: str = None):
        """
        Initialize settings loader.

        Args:
            config_dir: Directory to look for config files. Defaults to current directory.
        """
        self.config_dir = config_dir or os.getcwd()
        self.settings = self.DEFAULT_SETTINGS.copy()
        self.config_file_path = None

    def load_settings(self) -> Dict[str, Any]:
        """
        Load settings from configuration file if it exists.

        Returns:
            Dictionary of configuration settings
        """
        config_file = self._find_config_file()

        if config_file:
            self.config_file_path = config_file
            try:
                loaded_settings = self._load_config_file(config_file)
                if loaded_settings:
                    if not isinstance(loaded_settings, dict):
                        raise ValueError("top level must be a mapping")
                    # Merge with defaults, giving preference to loaded settings
                    self.settings.update(loaded_settings)
                    print(f"Loaded configuration from: {os.path.relpath(config_file)}")
            except (ValueError, IOError, OSError) as e:
                print(f"Warning: Failed to load config file {config_file}: {e}")

        return self.settings.copy()

    def _find_config_file(self) -> Optional[str]:
        for filename in self.CONFIG_FILES:
            config_path = os.path.join(self.config_dir, filename)
            if os.path.exists(config_path):
                return config_path
        return None

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from a file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Dictionary of configuration settings
        """
        try:
            file_ext = os.path.splitext(config_path)[1].lower()

            with open(config_path, 'r', encoding='utf-8') as f:
                if file_ext in ['.yml', '.yaml']:
                    return yaml.safe_load(f) or {}
                elif file_ext == '.json':
                    return json.load(f) or {}
                else:
                    raise ValueError(f"Unsupported config file format: {file_ext}")
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        except PermissionError:
            raise PermissionError(f"Permission denied reading configuration file: {config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file {config_path}: {e}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file {config_path}: {e}")

    def create_sample_config(self, file_format: str = 'yml') -> str:
        """
        Create a sample configuration file.

        Args:
            file_format: Format for config file ('yml', 'yaml', or 'json')

        Returns:
            Path to created sample config file
        """
        sample_config = {
            'site_title': 'My Blog',
            'site_url': 'https://example.com',
            'site_description': 'Notes and posts',
            'author_email': 'me@example.com',
            'output': 'output',
            'content': 'assets/blog',
            'templates': 'assets/templates',
            'static': 'assets/static',
            'images': 'assets/blog/images',
            'theme': 'one-dark',
            'minify': False,
            'webp': False,
        }

        filename = f'kakanest.{file_format}'
        config_path = os.path.join(self.config_dir, filename)

        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                if file_format in ['yml', 'yaml']:
                    # Custom YAML output with comments
                    f.write("# Kakanest Configuration File\n\n")
                    f.write("# Site information\n")
                    f.write("site_title: My Blog\n")
                    f.write("site_url: https://example.com  # required for index.xml\n")
                    f.write("site_description: Notes and posts\n")
                    f.write("author_email: me@example.com\n\n")
                    f.write("# Build settings\n")
                    f.write("output: output\n")
                    f.write("content: assets/blog\n")
                    f.write("templates: assets/templates\n")
                    f.write("static: assets/static\n")
                    f.write("images: assets/blog/images\n\n")
                    f.write("# Code highlighting (any Pygments style name)\n")
                    f.write("theme: one-dark\n\n")
                    f.write("# Asset settings\n")
                    f.write("minify: false\n")
                    f.write("webp: false\n")
                elif file_format == 'json':
                    json.dump(sample_config, f, indent=2)
                else:
                    raise ValueError(f"Unsupported config file format: {file_format}")
        except PermissionError:
            raise PermissionError(f"Permission denied creating configuration file: {config_path}")
        except (IOError, OSError) as e:
            raise IOError(f"Error writing configuration file {config_path}: {e}")

        return config_path

    def merge_with_args(self, args_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge configuration settings with command-line arguments.
        Command-line arguments take precedence over config file settings.
        """
        merged = self.settings.copy()

        # Override with non-None command line arguments
        for key, value in args_dict.items():
            if value is None:
                continue
            # store_true flags only override when set
            if key in ('minify', 'webp') and value is False:
                continue
            merged[key] = value

        return merged
