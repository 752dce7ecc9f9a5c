"""Tests for configuration loading."""

from pathlib import Path
from textwrap import dedent

from srcon.config import DEFAULT_PORT, load_config


class TestLoadConfig:
    def test_default_config_when_no_file(self, tmp_path: Path):
        config = load_config(tmp_path / "nonexistent.toml")

        assert config.default_server == "local"
        assert config.servers["local"].host == "127.0.0.1"
        assert config.servers["local"].port == 27015
        assert config.servers["local"].password is None
        assert config.interactive is True

    def test_load_full_config(self, tmp_path: Path):
        config_file = tmp_path / "config.toml"
        config_file.write_text(
            dedent("""\
            [defaults]
            server = "css"
            interactive = false

            [servers.css]
            name = "Counter-Strike"
            host = "192.168.1.1"
            port = 27016
            password = "hunter2"
        """)
        )

        config = load_config(config_file)

        assert config.default_server == "css"
        assert config.interactive is False
        server = config.servers["css"]
        assert server.name == "Counter-Strike"
        assert server.host == "192.168.1.1"
        assert server.port == 27016
        assert server.password == "hunter2"

    def test_default_port(self, tmp_path: Path):
        config_file = tmp_path / "config.toml"
        config_file.write_text(
            dedent("""\
            [servers.s1]
            host = "10.0.0.1"
        """)
        )

        config = load_config(config_file)
        assert config.servers["s1"].port == DEFAULT_PORT

    def test_name_defaults_to_key(self, tmp_path: Path):
        config_file = tmp_path / "config.toml"
        config_file.write_text(
            dedent("""\
            [servers.myserver]
            host = "10.0.0.1"
        """)
        )

        config = load_config(config_file)
        assert config.servers["myserver"].name == "myserver"
        assert config.servers["myserver"].password is None

    def test_empty_config(self, tmp_path: Path):
        config_file = tmp_path / "config.toml"
        config_file.write_text("")

        config = load_config(config_file)
        assert config.default_server is None
        assert config.servers == {}
        assert config.interactive is True
