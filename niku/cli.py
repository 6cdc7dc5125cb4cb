"""Command line client: send, receive and prune shared objects."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
import shutil
import signal
import sys
from collections.abc import AsyncIterator, Iterator, Sequence
from pathlib import Path

from niku.common import _debug_mode, format_bytes_with_unit, get_cache_path
from niku.object import ObjectKind
from niku.peer import Peer, PeerError

logger = logging.getLogger(__name__)

LOG_ENV_VAR_NAME = "NIKU_LOG"
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

DEBUG_KEEP_ALIVE_OBJECT_SECONDS = 2
RELEASE_KEEP_ALIVE_OBJECT_SECONDS = 2 * 60

_DOT_INTERVAL = 0.02
_ACCEPTED_ANSWERS = ("y", "yes", "")

_LEVELS = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": logging.CRITICAL + 1,
}

_RESET = "\x1b[0m"
_BOLD_RED = "\x1b[1m\x1b[31m"
_BOLD_CYAN = "\x1b[1m\x1b[36m"
_BOLD_YELLOW = "\x1b[1m\x1b[33m"
_BOLD_MAGENTA = "\x1b[1m\x1b[35m"


class CliError(Exception):
    """Error that stops a command of the command line client."""


class _CliFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        return f"{self._header(record.levelno)}{message}"

    @staticmethod
    def _header(level: int) -> str:
        if level >= logging.ERROR:
            return f"[ {_BOLD_RED}ERROR{_RESET} ] "
        if level >= logging.WARNING:
            return f"[ {_BOLD_YELLOW}WARN{_RESET} ] "
        if level >= logging.INFO:
            return ""
        if level >= logging.DEBUG:
            return f"[ {_BOLD_CYAN}DEBUG{_RESET} ] "
        return f"[ {_BOLD_MAGENTA}TRACE{_RESET} ] "


class _CliHandler(logging.StreamHandler):
    pass


def set_cli_logging() -> logging.Handler:
    """Log to stderr with level headers; the level comes from NIKU_LOG, default warn."""
    root = logging.getLogger()
    for handler in [h for h in root.handlers if isinstance(h, _CliHandler)]:
        root.removeHandler(handler)

    handler = _CliHandler(sys.stderr)
    handler.setFormatter(_CliFormatter("%(message)s"))
    root.addHandler(handler)

    level_name = os.environ.get(LOG_ENV_VAR_NAME, "warn").strip().lower()
    root.setLevel(_LEVELS.get(level_name, logging.WARNING))
    return handler


def _eprint(text: str) -> None:
    sys.stderr.write(text)
    sys.stderr.flush()


def _emoji(symbol: str, fallback: str) -> str:
    encoding = getattr(sys.stderr, "encoding", None) or "ascii"
    try:
        symbol.encode(encoding)
    except (UnicodeEncodeError, LookupError):
        return fallback
    return symbol


@contextlib.asynccontextmanager
async def generic_wait(message: str) -> AsyncIterator[None]:
    """Print ``message`` followed by dots on stderr while the block runs."""
    _eprint(f"{message}: .")
    stop = asyncio.Event()

    async def dots() -> None:
        while True:
            try:
                await asyncio.wait_for(stop.wait(), _DOT_INTERVAL)
            except asyncio.TimeoutError:
                _eprint(".")
            else:
                _eprint("\n")
                return

    task = asyncio.create_task(dots())
    try:
        yield
    finally:
        stop.set()
        await task


def _folder_size(path: Path) -> int:
    return sum(item.stat().st_size for item in path.rglob("*") if item.is_file())


def prune() -> None:
    """Delete the cache folder."""
    cache_path = get_cache_path()

    if not cache_path.exists():
        logger.info("The cache is empty!")
        return

    if not cache_path.is_dir():
        logger.info("The cache is not a folder! Force deleting it...")
        cache_path.unlink()
        return

    cache_size = _folder_size(cache_path)
    logger.info("Pruning the cache (%s)...", format_bytes_with_unit(cache_size))
    shutil.rmtree(cache_path)
    logger.info("Done!")


def _keep_alive_seconds() -> int:
    return DEBUG_KEEP_ALIVE_OBJECT_SECONDS if _debug_mode() else RELEASE_KEEP_ALIVE_OBJECT_SECONDS


@contextlib.contextmanager
def _stop_on_interrupt(stop: asyncio.Event) -> Iterator[None]:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, stop.set)
        installed = True
    except (NotImplementedError, RuntimeError, ValueError):
        installed = False
    try:
        yield
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


async def send(path: str | os.PathLike[str]) -> None:
    """Publish a file or folder and keep it alive until interrupted."""
    source = Path(path).resolve(strict=True)

    async with Peer() as peer:
        temporary_zip: Path | None = None
        if source.is_file():
            object_entry = await peer.create_file_object_entry(source)
        elif source.is_dir():
            async with generic_wait("Compressing folder"):
                object_entry, temporary_zip = await peer.create_folder_object_entry(source)
        else:
            raise CliError("The given path is not for a file or for a folder")

        registered = await peer.publish_object_entry(object_entry)
        spaced_id = registered.id.replace("-", " ")

        logger.info(
            "%sSending %s '%s'", _emoji("📤 ", " "), object_entry.kind, object_entry.name
        )
        logger.info(" Your ID is: '%s' (%s)", spaced_id, registered.id)
        logger.info("")
        logger.info("%s On the other device, please run:", _emoji("📥", " "))
        logger.info("  niku receive %s", registered.id)

        interval = _keep_alive_seconds()
        stop = asyncio.Event()
        with _stop_on_interrupt(stop):
            while not stop.is_set():
                logger.debug("Keeping alive the object...")
                await peer.keep_alive_object_entry(registered)
                try:
                    await asyncio.wait_for(stop.wait(), interval)
                except asyncio.TimeoutError:
                    pass

        if temporary_zip is not None:
            logger.debug("Removing temporal file...")
            temporary_zip.unlink(missing_ok=True)


async def _ask(prompt: str) -> bool:
    _eprint(prompt)
    line = await asyncio.to_thread(sys.stdin.readline)
    if not line:
        return False
    return line.rstrip("\r\n").lower() in _ACCEPTED_ANSWERS


async def receive(
    id: str, output: str | os.PathLike[str] | None = None, yes: bool = False
) -> None:
    """Download the object published under ``id``."""
    object_id = id.replace("_", "-")
    output_path = Path(os.path.abspath(output)) if output is not None else None

    async with Peer() as peer:
        object_entry = await peer.retrieve_object_entry(object_id)
        description = (
            f"{object_entry.kind} '{object_entry.name}' "
            f"({format_bytes_with_unit(object_entry.size)})"
        )

        if not yes:
            if not await _ask(f"Download {description}? (Y/n): "):
                logger.info("Download canceled!")
                return
        else:
            logger.info("Downloading %s", description)

        async with generic_wait("Downloading object"):
            await peer.download_object_entry(object_entry)

        temporary_zip: Path | None = None
        async with generic_wait("Exporting object"):
            if object_entry.kind is ObjectKind.FILE:
                saved_at = await peer.export_file_object_entry(object_entry, output_path)
            else:
                saved_at, temporary_zip = await peer.export_folder_object_entry(
                    object_entry, output_path
                )

        saved_text = str(saved_at)
        try:
            saved_text.encode("utf-8")
        except UnicodeEncodeError:
            raise CliError(
                "The path where the file was downloaded is not UTF-8 (Unicode) encoded"
            ) from None

        logger.info("Done! Object '%s' downloaded at '%s'", object_entry.name, saved_text)

        if temporary_zip is not None:
            logger.debug("Removing temporal file...")
            temporary_zip.unlink(missing_ok=True)


def _describe(error: Exception) -> str:
    if isinstance(error, PeerError):
        return f"An error has occured while interacting with the peer: {error}"
    if isinstance(error, OSError):
        return f"IO error: {error}"
    return str(error)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="niku",
        description="NIKU: Send files fast and privately with the power of P2P technologies",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("prune", help="Prune the cache")

    send_parser = commands.add_parser("send", help="Send an object")
    send_parser.add_argument("path")

    receive_parser = commands.add_parser("receive", help="Receive an object")
    receive_parser.add_argument("id", help="The ID of the object to download")
    receive_parser.add_argument(
        "-o",
        "--output",
        help="A custom output path where the object should be downloaded",
    )
    receive_parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Download the object without asking the user",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """Run the command line client."""
    set_cli_logging()
    args = _parser().parse_args(argv)

    try:
        if args.command == "prune":
            prune()
        elif args.command == "send":
            asyncio.run(send(args.path))
        else:
            asyncio.run(receive(args.id, args.output, args.yes))
    except (CliError, PeerError, OSError) as error:
        logger.error("%s", _describe(error))
    except KeyboardInterrupt:
        pass