"""Unit tests for configuration loading and CLI overrides."""

import pytest

from tmux_visualiser.cli.main import build_parser, config_from_args, main
from tmux_visualiser.config import VisualiserConfig, load_config, resolve_config_path


@pytest.fixture(autouse=True)
def no_config_env(monkeypatch):
    monkeypatch.delenv("TMUX_VISUALISER_CONFIG", raising=False)


class TestVisualiserConfig:
    """Tests for defaults, clamps and YAML mapping."""

    def test_defaults(self):
        config = VisualiserConfig()
        assert config.lines == 500
        assert config.interval == 1.0
        assert config.cmd_timeout == 0.9
        assert config.max_workers == 4
        assert config.include_default_socket is True
        assert config.include_lisa_sockets is True

    def test_normalize_clamps(self):
        config = VisualiserConfig(
            lines=5, interval=0.01, cmd_timeout=0.0, max_workers=0,
            explicit_sockets=["", "  ", " /tmp/a.sock "], socket_glob="  ",
        ).normalize()

        assert config.lines == 20
        assert config.interval == 0.2
        assert config.cmd_timeout == 0.3
        assert config.max_workers == 1
        assert config.explicit_sockets == ["/tmp/a.sock"]
        assert config.socket_glob == ""

    def test_from_dict(self):
        config = VisualiserConfig.from_dict({
            "lines": 1000,
            "interval": 2,
            "workers": 8,
            "all_panes": True,
            "default_socket": False,
            "sockets": ["/tmp/a.sock"],
            "lisa_sockets": False,
            "socket_glob": "/tmp/lisa-*.sock",
            "logging": {"file": "/tmp/tv.log", "level": "DEBUG"},
        })

        assert config.lines == 1000
        assert config.interval == 2.0
        assert config.max_workers == 8
        assert config.all_panes is True
        assert config.include_default_socket is False
        assert config.explicit_sockets == ["/tmp/a.sock"]
        assert config.include_lisa_sockets is False
        assert config.socket_glob == "/tmp/lisa-*.sock"
        assert config.log_file == "/tmp/tv.log"
        assert config.log_level == "DEBUG"

    def test_from_empty_dict(self):
        assert VisualiserConfig.from_dict({}) == VisualiserConfig()


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file_gives_empty_mapping(self, tmp_path):
        assert load_config(str(tmp_path / "absent.yaml")) == {}

    def test_reads_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("lines: 250\nsockets:\n  - /tmp/a.sock\n")
        assert load_config(str(path)) == {"lines": 250, "sockets": ["/tmp/a.sock"]}

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(str(path)) == {}

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="must contain a mapping"):
            load_config(str(path))

    def test_env_var_path(self, tmp_path, monkeypatch):
        path = tmp_path / "env.yaml"
        monkeypatch.setenv("TMUX_VISUALISER_CONFIG", str(path))
        assert resolve_config_path() == path
        assert resolve_config_path(str(tmp_path / "flag.yaml")) == tmp_path / "flag.yaml"


class TestCliOverrides:
    """Tests for CLI flags layered over config.yaml."""

    def test_flags_override_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("lines: 250\nworkers: 2\nsockets: [/tmp/file.sock]\n")
        args = build_parser().parse_args([
            "--config", str(path),
            "--lines", "5",
            "--socket", "/tmp/a.sock",
            "--socket", "/tmp/b.sock",
            "--no-lisa-sockets",
        ])

        config = config_from_args(args)

        assert config.lines == 20
        assert config.max_workers == 2
        assert config.explicit_sockets == ["/tmp/file.sock", "/tmp/a.sock", "/tmp/b.sock"]
        assert config.include_lisa_sockets is False
        assert config.include_default_socket is True

    def test_unset_flags_keep_file_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("all_panes: true\ndefault_socket: false\ninterval: 3\n")
        args = build_parser().parse_args(["--config", str(path)])

        config = config_from_args(args)

        assert config.all_panes is True
        assert config.include_default_socket is False
        assert config.interval == 3.0

    def test_no_default_socket_flag(self, tmp_path):
        args = build_parser().parse_args([
            "--config", str(tmp_path / "absent.yaml"), "--no-default-socket", "--all-panes",
        ])

        config = config_from_args(args)

        assert config.include_default_socket is False
        assert config.all_panes is True

    def test_bad_config_file_exits_with_error(self, tmp_path, capsys):
        path = tmp_path / "config.yaml"
        path.write_text("lines: [unclosed\n")

        assert main(["--config", str(path)]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_non_mapping_config_exits_with_error(self, tmp_path, capsys):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n")

        assert main(["--config", str(path)]) == 1
        assert "must contain a mapping" in capsys.readouterr().err
