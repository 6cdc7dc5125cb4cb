import asyncio
import logging

import platformdirs
import pytest

from niku.cli import CliError, generic_wait, main, prune, receive, send, set_cli_logging
from niku.peer import InvalidIdError


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    level = root.level
    handlers = list(root.handlers)
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


@pytest.fixture
def cache_path(tmp_path, monkeypatch):
    monkeypatch.setattr(platformdirs, "user_cache_dir", lambda *a, **k: str(tmp_path))
    return tmp_path / "app.niku"


def _record(level, message):
    return logging.LogRecord("niku.test", level, __file__, 1, message, None, None)


def test_main_without_command_is_a_usage_error():
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 2


def test_set_cli_logging_default_level(monkeypatch):
    monkeypatch.delenv("NIKU_LOG", raising=False)
    handler = set_cli_logging()
    root = logging.getLogger()
    assert handler in root.handlers
    assert root.level == logging.WARNING
    assert not root.isEnabledFor(logging.INFO)


def test_set_cli_logging_level_from_env(monkeypatch):
    monkeypatch.setenv("NIKU_LOG", "debug")
    handler = set_cli_logging()
    root = logging.getLogger()
    assert handler in root.handlers
    assert root.level == logging.DEBUG


def test_set_cli_logging_is_not_duplicated():
    first = set_cli_logging()
    second = set_cli_logging()
    handlers = logging.getLogger().handlers
    assert second in handlers
    assert first not in handlers


def test_cli_log_headers():
    handler = set_cli_logging()
    assert handler.format(_record(logging.INFO, "hello")) == "hello"
    warning = handler.format(_record(logging.WARNING, "hello"))
    assert "WARN" in warning and warning.endswith(" ] hello")
    error = handler.format(_record(logging.ERROR, "hello"))
    assert "ERROR" in error and error.endswith(" ] hello")
    debug = handler.format(_record(logging.DEBUG, "hello"))
    assert "DEBUG" in debug and debug.endswith(" ] hello")


@pytest.mark.asyncio
async def test_generic_wait_prints_dots_then_newline(capsys):
    async with generic_wait("Working"):
        await asyncio.sleep(0.1)
    err = capsys.readouterr().err
    assert err.startswith("Working: .")
    assert err.endswith("\n")
    assert set(err[len("Working: ") : -1]) == {"."}


@pytest.mark.asyncio
async def test_generic_wait_stops_when_block_fails(capsys):
    with pytest.raises(RuntimeError, match="boom"):
        async with generic_wait("Working"):
            raise RuntimeError("boom")
    err = capsys.readouterr().err
    assert err.startswith("Working: .")
    assert err.endswith("\n")


def test_prune_removes_cache_folder(cache_path, caplog):
    (cache_path / "nested").mkdir(parents=True)
    (cache_path / "nested" / "a.zip").write_bytes(b"x" * 876)
    caplog.set_level(logging.INFO, logger="niku.cli")
    prune()
    assert not cache_path.exists()
    assert "876.00 B" in caplog.text
    assert "Done!" in caplog.text


def test_prune_removes_cache_file(cache_path, caplog):
    cache_path.write_bytes(b"data")
    caplog.set_level(logging.INFO, logger="niku.cli")
    prune()
    assert "The cache is not a folder! Force deleting it..." in caplog.text
    assert not cache_path.exists()


def test_prune_empty_cache(cache_path, caplog):
    caplog.set_level(logging.INFO, logger="niku.cli")
    prune()
    assert "The cache is empty!" in caplog.text
    assert not cache_path.exists()


def test_main_prune(cache_path, caplog):
    cache_path.mkdir()
    (cache_path / "file").write_bytes(b"abc")
    caplog.set_level(logging.INFO, logger="niku.cli")
    main(["prune"])
    assert "3.00 B" in caplog.text
    assert "Done!" in caplog.text
    assert not cache_path.exists()


@pytest.mark.asyncio
async def test_receive_invalid_id():
    with pytest.raises(InvalidIdError):
        await receive("bogus_id", None, True)


@pytest.mark.asyncio
async def test_send_missing_path(tmp_path):
    with pytest.raises(FileNotFoundError):
        await send(tmp_path / "missing")


def test_main_receive_invalid_id_logs_error(caplog):
    main(["receive", "bogus_id", "-y"])
    assert (
        "An error has occured while interacting with the peer: The given ID is invalid"
        in caplog.text
    )


def test_main_send_missing_path_logs_io_error(tmp_path, caplog):
    main(["send", str(tmp_path / "missing")])
    assert "IO error:" in caplog.text


def test_cli_error_message():
    error = CliError("The given path is not for a file or for a folder")
    assert str(error) == "The given path is not for a file or for a folder"