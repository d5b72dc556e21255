import pytest
import typer

import bridge as cli


def test_build_config_applies_overrides(tmp_path):
    cfg_path = tmp_path / "bridge.yaml"
    cfg_path.write_text("server:\n  host: 10.1.1.1\n  port: 2000\n", encoding="utf-8")

    cfg = cli.build_config(str(cfg_path), port=3000, host=None, baudrate=9600)

    assert cfg.host == "10.1.1.1"
    assert cfg.port == 3000
    assert cfg.baudrate == 9600


def test_build_config_rejects_bad_values(capsys):
    with pytest.raises(typer.Exit):
        cli.build_config(None, port=70000)
    assert "invalid server port" in capsys.readouterr().out


def test_build_config_missing_file(tmp_path, capsys):
    with pytest.raises(typer.Exit):
        cli.build_config(str(tmp_path / "missing.yaml"))
    assert "not found" in capsys.readouterr().out


def test_info_prints_frame_format(capsys):
    cli.info()
    out = capsys.readouterr().out
    assert "STM:1:1::1" in out
    assert "Best-effort" in out


def test_ports_lists_devices(monkeypatch, capsys):
    from serial.tools import list_ports

    class FakePort:
        device = "/dev/ttyFAKE0"
        description = "Fake adapter"
        hwid = "USB VID:PID=0000:0000"

    monkeypatch.setattr(list_ports, "comports", lambda: [FakePort()])
    cli.ports()
    assert "/dev/ttyFAKE0" in capsys.readouterr().out
