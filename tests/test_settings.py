"""Tests for KakanestSettings."""

import json
import os

import yaml

from kakanest_pkg.settings import KakanestSettings


class TestKakanestSettings:
    """Test cases for configuration loading."""

    def test_defaults_without_config_file(self, temp_dir):
        settings = KakanestSettings(temp_dir).load_settings()

        assert settings == KakanestSettings.DEFAULT_SETTINGS
        assert settings['content'] == 'assets/blog'
        assert settings['theme'] == 'one-dark'

    def test_yaml_config(self, temp_dir):
        with open(os.path.join(temp_dir, 'kakanest.yml'), 'w') as f:
            yaml.dump({'site_title': 'Notes', 'webp': True}, f)

        loader = KakanestSettings(temp_dir)
        settings = loader.load_settings()
        assert settings['site_title'] == 'Notes'
        assert settings['webp'] is True
        assert settings['output'] == 'output'
        assert loader.config_file_path.endswith('kakanest.yml')

    def test_json_config(self, temp_dir):
        with open(os.path.join(temp_dir, 'kakanest.json'), 'w') as f:
            json.dump({'theme': 'monokai'}, f)

        assert KakanestSettings(temp_dir).load_settings()['theme'] == 'monokai'

    def test_yml_preferred_over_json(self, temp_dir):
        with open(os.path.join(temp_dir, 'kakanest.yml'), 'w') as f:
            f.write("site_title: From YAML\n")
        with open(os.path.join(temp_dir, 'kakanest.json'), 'w') as f:
            json.dump({'site_title': 'From JSON'}, f)

        assert KakanestSettings(temp_dir).load_settings()['site_title'] == 'From YAML'

    def test_invalid_config_falls_back_to_defaults(self, temp_dir, capsys):
        with open(os.path.join(temp_dir, 'kakanest.yml'), 'w') as f:
            f.write("site_title: [unclosed\n")

        settings = KakanestSettings(temp_dir).load_settings()
        assert settings['site_title'] == 'Kakanest'
        assert 'Failed to load config file' in capsys.readouterr().out

    def test_merge_with_args(self, temp_dir):
        with open(os.path.join(temp_dir, 'kakanest.yml'), 'w') as f:
            f.write("site_title: Notes\nminify: true\noutput: public\n")

        loader = KakanestSettings(temp_dir)
        loader.load_settings()
        merged = loader.merge_with_args({'output': 'dist', 'site_title': None, 'minify': False})

        assert merged['output'] == 'dist'
        assert merged['site_title'] == 'Notes'
        assert merged['minify'] is True

    def test_sample_configs_load(self, temp_dir):
        for file_format in ('yml', 'json'):
            loader = KakanestSettings(temp_dir)
            path = loader.create_sample_config(file_format)
            assert os.path.basename(path) == f'kakanest.{file_format}'

            loaded = loader._load_config_file(path)
            assert loaded['site_url'] == 'https://example.com'
            assert loaded['content'] == 'assets/blog'
            os.remove(path)
