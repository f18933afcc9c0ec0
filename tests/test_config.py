"""Tests for settings loading and validation."""

import pytest

from config import load_settings_conf, SettingsError, DEFAULTS

def test_defaults_when_file_missing(tmp_path):
    settings = load_settings_conf(str(tmp_path))

    assert settings['chain_enabled'] is False
    assert settings['db_max_pool_size'] == int(DEFAULTS['db_max_pool_size'])
    assert settings['amount_scale'] == 100

def test_file_overrides_defaults(tmp_path):
    (tmp_path / 'settings.conf').write_text(
        "[DEFAULT]\n"
        "chain_enabled = yes\n"
        "chain_rpc_url = http://gateway:9000\n"
        "api_port = 9100\n"
    )

    settings = load_settings_conf(str(tmp_path))

    assert settings['chain_enabled'] is True
    assert settings['chain_rpc_url'] == "http://gateway:9000"
    assert settings['api_port'] == 9100
    assert settings['metadata_base_uri'] == DEFAULTS['metadata_base_uri']

def test_settings_dir_from_environment(tmp_path, monkeypatch):
    (tmp_path / 'settings.conf').write_text("[DEFAULT]\namount_scale = 1000\n")
    monkeypatch.setenv('MEDX_SETTINGS_DIR', str(tmp_path))

    assert load_settings_conf()['amount_scale'] == 1000

@pytest.mark.parametrize("line", [
    "db_max_pool_size = many",
    "chain_enabled = maybe",
    "db_url = mysql://localhost/medx",
    "amount_scale = 0",
])
def test_invalid_values(tmp_path, line):
    (tmp_path / 'settings.conf').write_text(f"[DEFAULT]\n{line}\n")

    with pytest.raises(SettingsError):
        load_settings_conf(str(tmp_path))

def test_empty_default_section(tmp_path):
    (tmp_path / 'settings.conf').write_text("[DEFAULT]\n")

    with pytest.raises(SettingsError, match=r"\[DEFAULT\]"):
        load_settings_conf(str(tmp_path))
