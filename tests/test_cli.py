import logging
import os

from moment_companion import cli
from moment_companion.archive import ArchiveEngine
from moment_companion.config import load_settings


def test_version_flag(capsys):
    assert cli.main(["--version"]) == 0
    assert capsys.readouterr().out.strip() == f"moment-companion {cli.__version__}"


def test_parser_defaults():
    args = cli.build_parser().parse_args([])
    assert args.port is None
    assert not args.debug
    assert not args.autostart
    assert not args.remove_autostart


def test_remove_autostart_exits_without_serving(tmp_path, monkeypatch):
    settings = tmp_path / "settings.yml"
    settings.write_text(
        f"log_dir: {tmp_path / 'logs'}\ndebug_logging: true\n", encoding="utf-8"
    )
    calls = []

    def fake_setup_logging(log_dir, level=logging.INFO, console=True):
        calls.append((log_dir, level))
        return logging.getLogger("moment_companion"), "companion.log"

    monkeypatch.setattr(cli, "setup_logging", fake_setup_logging)
    monkeypatch.setattr(cli, "remove_autostart", lambda: calls.append("removed"))
    monkeypatch.setattr(cli, "serve", None)

    assert cli.main(["--settings", str(settings), "--remove-autostart"]) == 0
    assert calls == [(str(tmp_path / "logs"), logging.DEBUG), "removed"]


def test_write_settings_creates_file(tmp_path, capsys):
    path = tmp_path / "conf" / "settings.yml"
    assert cli.main(["--settings", str(path), "--port", "60001", "--write-settings"]) == 0
    assert capsys.readouterr().out.strip() == str(path)
    assert load_settings(str(path)).port == 60001


def test_render_archive_rebuilds_html(tmp_path, capsys):
    engine = ArchiveEngine()
    directory = engine.start(
        str(tmp_path), "Retro", "1", "u", "2024-03-15T10:00:00.000Z"
    )
    engine.end("2024-03-15T11:00:00.000Z")
    html_path = os.path.join(directory, "archive.html")
    os.remove(html_path)

    assert cli.main(["--render-archive", directory]) == 0
    assert capsys.readouterr().out.strip() == html_path
    with open(html_path, "r", encoding="utf-8") as handle:
        assert "Retro" in handle.read()
