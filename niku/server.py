"""Discovery backend that maps human friendly IDs to shared objects."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import random
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from aiohttp import web

from niku.backend import ErrorResponse, ObjectKeepAliveRequest, RegisteredObjectData
from niku.common import _debug_mode
from niku.object import ObjectEntry

logger = logging.getLogger(__name__)

ENV_VARS_PREFIX = "APP_NIKU_BACKEND_"
OBJECT_ID_PREFIX_ENV_VAR_NAME = f"{ENV_VARS_PREFIX}OBJECT_ID_PREFIX"
DEFAULT_OBJECT_ID_PREFIX = "test"
PORT_ENV_VAR_NAME = f"{ENV_VARS_PREFIX}PORT"
DEFAULT_PORT = "4000"
WORDS_DIR_ENV_VAR_NAME = f"{ENV_VARS_PREFIX}WORDS_DIR"
LOG_ENV_VAR_NAME = f"{ENV_VARS_PREFIX}LOG"
SERVE_ADDRESS = "0.0.0.0"

DEBUG_OBJECT_LIFETIME_SECONDS = 5
RELEASE_OBJECT_LIFETIME_SECONDS = 5 * 60
DELETE_AFTER_SECONDS = 5.0

_DEFAULT_WORDS_DIR = Path(__file__).parent / "data"
_JSON_CONTENT_TYPE = "application/json"


class ServerError(Exception):
    """Error answered to a client, with its HTTP status and error code."""

    def __init__(self, status: int, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.status = status
        self.code = code
        self.message = message

    @classmethod
    def unknown_object(cls) -> ServerError:
        return cls(404, "0001@NKBE", "The requested object is not available")

    @classmethod
    def unknown_keep_alive_key(cls) -> ServerError:
        return cls(
            404,
            "0002@NKBE",
            "The given keep alive key doesn't match for any registered object",
        )

    def to_response(self) -> web.Response:
        """Build the JSON error response sent to the client."""
        return web.json_response(
            ErrorResponse(self.code, self.message).to_dict(), status=self.status
        )


class RunError(Exception):
    """Error that stops the server from running."""


def load_word_list(path: str | os.PathLike[str]) -> list[str]:
    """Read a non-empty JSON list of words."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, list) or not all(isinstance(word, str) for word in data):
        raise ValueError(f"{path}: expected a JSON list of strings")
    if not data:
        raise ValueError(f"{path}: the list of words is empty")
    return data


def _checked_words(name: str, words: Sequence[str]) -> list[str]:
    words = list(words)
    if not words:
        raise ValueError(f"the list of {name} must not be empty")
    return words


@dataclass
class _KeepAliveEntry:
    object_id: str
    delete_task: asyncio.TimerHandle


class BackendState:
    """Registered objects and the timers that expire them."""

    def __init__(
        self,
        object_id_prefix: str = DEFAULT_OBJECT_ID_PREFIX,
        *,
        adjectives: Sequence[str],
        nouns: Sequence[str],
        verbs: Sequence[str],
        lifetime: float = DELETE_AFTER_SECONDS,
    ) -> None:
        self.object_id_prefix = object_id_prefix
        self.adjectives = _checked_words("adjectives", adjectives)
        self.nouns = _checked_words("nouns", nouns)
        self.verbs = _checked_words("verbs", verbs)
        self.lifetime = lifetime
        self.objects: dict[str, ObjectEntry] = {}
        self._keep_alive_entries: dict[str, _KeepAliveEntry] = {}

    def _new_id(self) -> str:
        while True:
            candidate = "-".join(
                (
                    self.object_id_prefix,
                    random.choice(self.adjectives),
                    random.choice(self.nouns),
                    random.choice(self.verbs),
                )
            )
            if candidate not in self.objects:
                return candidate

    def _schedule_delete(self, object_id: str, keep_alive_key: str) -> asyncio.TimerHandle:
        if _debug_mode():
            logger.debug(
                "Creating an object scheduled delete task (id=%s, keep_alive_key=%s)",
                object_id,
                keep_alive_key,
            )
        loop = asyncio.get_running_loop()
        return loop.call_later(self.lifetime, self._delete, object_id, keep_alive_key)

    def _delete(self, object_id: str, keep_alive_key: str) -> None:
        if _debug_mode():
            logger.info(
                "Object '%s' timed out! Deleting it... (keep_alive_key=%s)",
                object_id,
                keep_alive_key,
            )
        self.objects.pop(object_id, None)
        self._keep_alive_entries.pop(keep_alive_key, None)

    def register_object(self, entry: ObjectEntry) -> RegisteredObjectData:
        """Store an object under a fresh ID and schedule its deletion."""
        object_id = self._new_id()
        keep_alive_key = str(uuid.uuid4())
        self.objects[object_id] = entry
        self._keep_alive_entries[keep_alive_key] = _KeepAliveEntry(
            object_id=object_id,
            delete_task=self._schedule_delete(object_id, keep_alive_key),
        )
        if _debug_mode():
            logger.info("Created new object (id=%s, keep_alive_key=%s)", object_id, keep_alive_key)
        return RegisteredObjectData(id=object_id, keep_alive_key=keep_alive_key)

    def get_object(self, id: str) -> ObjectEntry:
        """Return the object registered under ``id``."""
        try:
            entry = self.objects[id]
        except KeyError:
            raise ServerError.unknown_object() from None
        if _debug_mode():
            logger.info("Requested object entry: %r", entry)
        return entry

    def keep_alive(self, id: str, keep_alive_key: str) -> None:
        """Restart the deletion timer of the object owning ``keep_alive_key``."""
        try:
            entry = self._keep_alive_entries[keep_alive_key]
        except KeyError:
            raise ServerError.unknown_keep_alive_key() from None
        entry.delete_task.cancel()
        self._keep_alive_entries[keep_alive_key] = _KeepAliveEntry(
            object_id=entry.object_id,
            delete_task=self._schedule_delete(id, keep_alive_key),
        )

    def close(self) -> None:
        """Cancel every pending deletion timer."""
        for entry in self._keep_alive_entries.values():
            entry.delete_task.cancel()


async def _read_json(request: web.Request) -> Any:
    if request.content_type != _JSON_CONTENT_TYPE:
        raise web.HTTPUnsupportedMediaType(
            text=f"Expected request with `Content-Type: {_JSON_CONTENT_TYPE}`"
        )
    try:
        return json.loads(await request.read())
    except ValueError as error:
        raise web.HTTPBadRequest(
            text=f"Failed to parse the request body as JSON: {error}"
        ) from None


def _unprocessable(error: ValueError) -> web.HTTPUnprocessableEntity:
    return web.HTTPUnprocessableEntity(
        text=f"Failed to deserialize the JSON body into the target type: {error}"
    )


def create_app(state: BackendState) -> web.Application:
    """Build the HTTP application serving the backend API."""
    routes = web.RouteTableDef()

    @routes.put("/objects")
    async def put_objects(request: web.Request) -> web.Response:
        data = await _read_json(request)
        try:
            entry = ObjectEntry.from_dict(data)
        except ValueError as error:
            raise _unprocessable(error) from None
        return web.json_response(state.register_object(entry).to_dict())

    @routes.get("/objects/{id}")
    async def get_objects_id(request: web.Request) -> web.Response:
        try:
            entry = state.get_object(request.match_info["id"])
        except ServerError as error:
            return error.to_response()
        return web.json_response(entry.to_dict())

    @routes.post("/objects/{id}/keep-alive")
    async def post_objects_id_keep_alive(request: web.Request) -> web.Response:
        data = await _read_json(request)
        try:
            keep_alive_request = ObjectKeepAliveRequest.from_dict(data)
        except ValueError as error:
            raise _unprocessable(error) from None
        try:
            state.keep_alive(request.match_info["id"], keep_alive_request.keep_alive_key)
        except ServerError as error:
            return error.to_response()
        return web.Response(status=200)

    async def close_state(_app: web.Application) -> None:
        state.close()

    app = web.Application()
    app.add_routes(routes)
    app.on_cleanup.append(close_state)
    return app


def _load_words(words_dir: Path) -> tuple[list[str], list[str], list[str]]:
    try:
        return (
            load_word_list(words_dir / "adjectives.json"),
            load_word_list(words_dir / "nouns.json"),
            load_word_list(words_dir / "verbs.json"),
        )
    except (OSError, ValueError) as error:
        raise RunError(f"Parsing the list of words failed: {error}") from error


async def run() -> None:
    """Start serving the backend until cancelled."""
    object_id_prefix = os.environ.get(OBJECT_ID_PREFIX_ENV_VAR_NAME, DEFAULT_OBJECT_ID_PREFIX)
    port_text = os.environ.get(PORT_ENV_VAR_NAME, DEFAULT_PORT)
    address = f"{SERVE_ADDRESS}:{port_text}"

    logger.info("Starting NIKU backend server...")
    debug = _debug_mode()
    if debug:
        logger.warning("DEBUG MODE ENABLED! Private information may be exposed!")
    lifetime = DEBUG_OBJECT_LIFETIME_SECONDS if debug else RELEASE_OBJECT_LIFETIME_SECONDS
    logger.info("Object lifetime: %ss", lifetime)
    logger.info("Object ID prefix: %s", object_id_prefix)
    logger.info("Serving at http://%s/", address)

    try:
        port = int(port_text)
        if not 0 <= port <= 65535:
            raise ValueError(f"port out of range: {port}")
    except ValueError as error:
        raise RunError(f"Binding to the TCP listening port failed: {error}") from error

    words_dir = Path(os.environ.get(WORDS_DIR_ENV_VAR_NAME, _DEFAULT_WORDS_DIR))
    adjectives, nouns, verbs = _load_words(words_dir)

    state = BackendState(object_id_prefix, adjectives=adjectives, nouns=nouns, verbs=verbs)
    runner = web.AppRunner(create_app(state))
    await runner.setup()
    try:
        site = web.TCPSite(runner, SERVE_ADDRESS, port)
        try:
            await site.start()
        except OSError as error:
            raise RunError(f"Binding to the TCP listening port failed: {error}") from error
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()


def main(argv: Sequence[str] | None = None) -> None:
    """Run the backend server from the command line."""
    parser = argparse.ArgumentParser(
        prog="niku-backend",
        description="Backend in charge of making discovery possible on NIKU.",
    )
    parser.parse_args(argv)

    level_name = os.environ.get(LOG_ENV_VAR_NAME, "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )

    try:
        asyncio.run(run())
    except RunError as error:
        logger.error("%s", error)
    except KeyboardInterrupt:
        pass