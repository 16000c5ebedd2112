"""
Configuration loading and validation tests.
"""

import json

import pytest

from dirshare.config import Config, load_config
from dirshare.errors import ConfigError


class TestConfigDefaults:

    def test_reference_ports(self):
        config = Config()
        assert config.control_port == 2021
        assert config.data_port == 2020
        assert config.client_data_port == 2022
        assert config.chunk_bytes == 2048
        assert config.inter_packet_delay == pytest.approx(0.01)
        assert config.receive_timeout == pytest.approx(5.0)


class TestConfigSources:
    """Environment, file and merged loading."""

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv('DIRSHARE_ROOT', str(tmp_path))
        monkeypatch.setenv('DIRSHARE_CONTROL_PORT', '3021')
        monkeypatch.setenv('DIRSHARE_CHUNK_BYTES', '1024')
        monkeypatch.setenv('DIRSHARE_PACKET_DELAY', '0.5')

        config = Config.from_env()

        assert config.root == tmp_path
        assert config.control_port == 3021
        assert config.chunk_bytes == 1024
        assert config.inter_packet_delay == pytest.approx(0.5)
        assert config.data_port == 2020

    def test_from_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            'root': str(tmp_path),
            'data_port': 4020,
            'receive_timeout': 1.5,
        }))

        config = Config.from_file(path)

        assert config.root == tmp_path
        assert config.data_port == 4020
        assert config.receive_timeout == pytest.approx(1.5)
        assert config.control_port == 2021

    def test_from_missing_file_gives_defaults(self, tmp_path):
        assert Config.from_file(tmp_path / "absent.json") == Config()

    def test_env_overrides_file(self, monkeypatch, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({'control_port': 3000, 'data_port': 3001}))
        monkeypatch.setenv('DIRSHARE_DATA_PORT', '4000')

        config = load_config(path)

        assert config.control_port == 3000
        assert config.data_port == 4000

    def test_save_round_trip(self, tmp_path):
        config = Config(root=tmp_path, chunk_bytes=512, log_level='DEBUG')
        config.save(tmp_path / "saved.json")

        assert Config.from_file(tmp_path / "saved.json") == config


class TestValidate:
    """Tests for Config.validate()."""

    def test_canonicalises_root(self, tmp_path):
        (tmp_path / "share").mkdir()
        config = Config(root=tmp_path / "share" / ".." / "share").validate()
        assert config.root == (tmp_path / "share").resolve()

    def test_no_root(self):
        with pytest.raises(ConfigError):
            Config().validate()

    def test_missing_root(self, tmp_path):
        with pytest.raises(ConfigError, match="does not exist"):
            Config(root=tmp_path / "nope").validate()

    def test_root_is_file(self, tmp_path):
        (tmp_path / "file.txt").write_text("x")
        with pytest.raises(ConfigError, match="not a directory"):
            Config(root=tmp_path / "file.txt").validate()

    @pytest.mark.parametrize("chunk_bytes", [0, -1, 70000])
    def test_bad_chunk_size(self, tmp_path, chunk_bytes):
        with pytest.raises(ConfigError):
            Config(root=tmp_path, chunk_bytes=chunk_bytes).validate()

    def test_bad_port(self, tmp_path):
        with pytest.raises(ConfigError):
            Config(root=tmp_path, control_port=70000).validate()

    def test_negative_delay(self, tmp_path):
        with pytest.raises(ConfigError):
            Config(root=tmp_path, inter_packet_delay=-1).validate()
