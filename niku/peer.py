"""A peer that publishes, finds and transfers objects."""

from __future__ import annotations

import asyncio
import json as jsonlib
import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import aiohttp

from niku.archive import compress_directory, create_temporal_zip_file, decompress_directory
from niku.backend import ErrorResponse, ObjectKeepAliveRequest, RegisteredObjectData
from niku.blobs import BlobStore
from niku.common import get_backend_address_from_prefix, get_recommended_backend_address
from niku.object import ObjectEntry, ObjectKind

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

PUBLISHED_FOLDERS_SUBFOLDER = "published-compressed-folders"
DOWNLOADED_FOLDERS_SUBFOLDER = "downloaded-compressed-folders"


class PeerError(Exception):
    """Base class of the errors raised while interacting with a peer."""


class NotUnicodePathError(PeerError):
    """The given path is not encoded with UTF-8."""

    def __init__(self) -> None:
        super().__init__("The given path is not encoded with UTF-8 (Unicode)")


class PublishObjectFailedError(PeerError):
    """The request to the backend server could not be sent."""

    def __init__(self, cause: object) -> None:
        super().__init__(f"Unable to send the object to the backend server: {cause}")
        self.cause = cause


class MalformedResponseError(PeerError):
    """The backend server answered with something that could not be understood."""

    def __init__(self, cause: object) -> None:
        super().__init__(
            "Unable to send the object to the backend server  due to a malformed response.: "
            f"{cause}"
        )
        self.cause = cause


class BackendError(PeerError):
    """The backend server reported an error."""

    def __init__(self, error: ErrorResponse) -> None:
        super().__init__(f"The backend returned the error: {error}")
        self.error = error


class FolderIsRootError(PeerError):
    """The given folder is the root."""

    def __init__(self) -> None:
        super().__init__("The given folder is the root")


class InvalidIdError(PeerError):
    """The given object ID does not belong to a known backend."""

    def __init__(self) -> None:
        super().__init__("The given ID is invalid")


def _to_json(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    return to_dict() if callable(to_dict) else value


def _decode(body: bytes) -> Any:
    try:
        return jsonlib.loads(body)
    except ValueError as error:
        raise MalformedResponseError(error) from error


def _backend_error(data: Any) -> PeerError:
    try:
        return BackendError(ErrorResponse.from_dict(data))
    except ValueError as error:
        return MalformedResponseError(error)


def _address_for(object_id: str) -> str:
    prefix = object_id.split("-", 1)[0]
    address = get_backend_address_from_prefix(prefix)
    if address is None:
        raise InvalidIdError()
    return address


def _object_name(path: Path) -> str:
    name = path.name
    if not name:
        raise FolderIsRootError()
    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        raise NotUnicodePathError() from None
    return name


def _output_path(object_entry: ObjectEntry, custom_output_path: str | os.PathLike[str] | None) -> Path:
    if custom_output_path is not None:
        return Path(custom_output_path)
    return Path.cwd() / object_entry.name


class Peer:
    """Peer used to interact with the backend and with other peers."""

    def __init__(self, *, host: str = "127.0.0.1", port: int = 0) -> None:
        self._host = host
        self._port = port
        self._session: aiohttp.ClientSession | None = None
        self.blobs = BlobStore()

    async def start(self) -> Peer:
        """Open the HTTP client and start serving blobs."""
        if self._session is None:
            self._session = aiohttp.ClientSession()
        if self.blobs.node_address is None:
            await self.blobs.start(self._host, self._port)
        return self

    async def close(self) -> None:
        """Stop serving blobs and close the HTTP client."""
        logger.debug("Shutting down the peer...")
        await self.blobs.close()
        session, self._session = self._session, None
        if session is not None:
            await session.close()

    async def __aenter__(self) -> Peer:
        return await self.start()

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    def _require_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise PeerError("The peer has not been started")
        return self._session

    def _node_address(self) -> str:
        if self.blobs.node_address is None:
            raise PeerError("The peer has not been started")
        return self.blobs.node_address

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        with_address: str | None = None,
    ) -> aiohttp.ClientResponse:
        """Send a request to a backend server; the returned response has its body read."""
        address = with_address if with_address is not None else get_recommended_backend_address()
        session = self._require_session()
        kwargs = {} if json is None else {"json": _to_json(json)}
        try:
            response = await session.request(method, f"{address}/{path}", **kwargs)
            async with response:
                await response.read()
        except aiohttp.ClientError as error:
            raise PublishObjectFailedError(error) from error
        return response

    async def request_expect_json(
        self,
        method: str,
        path: str,
        json: Any = None,
        with_address: str | None = None,
    ) -> Any:
        """Send a request and return its decoded JSON body, raising on backend errors."""
        response = await self.request(method, path, json, with_address)
        data = _decode(await response.read())
        if response.status >= 400:
            raise _backend_error(data)
        return data

    async def _request_as(
        self,
        converter: Callable[[Any], _T],
        method: str,
        path: str,
        json: Any = None,
        with_address: str | None = None,
    ) -> _T:
        response = await self.request(method, path, json, with_address)
        data = _decode(await response.read())
        try:
            return converter(data)
        except ValueError:
            raise _backend_error(data) from None

    async def publish_object_entry(self, object_entry: ObjectEntry) -> RegisteredObjectData:
        """Publish an object entry to the recommended backend server."""
        return await self._request_as(
            RegisteredObjectData.from_dict, "PUT", "objects", object_entry
        )

    async def retrieve_object_entry(self, id: str) -> ObjectEntry:
        """Retrieve an object entry from the backend its ID belongs to."""
        address = _address_for(id)
        return await self._request_as(
            ObjectEntry.from_dict, "GET", f"objects/{id}", None, address
        )

    async def keep_alive_object_entry(self, registered_object_entry: RegisteredObjectData) -> None:
        """Ask the backend not to delete the registered object entry."""
        address = _address_for(registered_object_entry.id)
        await self.request(
            "POST",
            f"objects/{registered_object_entry.id}/keep-alive",
            ObjectKeepAliveRequest(keep_alive_key=registered_object_entry.keep_alive_key),
            address,
        )

    async def download_object_entry(self, object_entry: ObjectEntry) -> None:
        """Fetch the object's blob from the peer hosting it."""
        try:
            await self.blobs.download(object_entry.file_hash, object_entry.node_address)
        except (ConnectionError, ValueError, OSError) as error:
            raise PeerError(f"An error from the blob store has been raised: {error}") from error

    async def _export(self, blob_hash: str, output_path: Path) -> None:
        try:
            await self.blobs.export(blob_hash, output_path)
        except KeyError as error:
            raise PeerError(f"An error from the blob store has been raised: {error}") from error

    async def create_file_object_entry(self, path: str | os.PathLike[str]) -> ObjectEntry:
        """Import a file into the store and describe it as an object entry."""
        file_path = Path(path)
        name = _object_name(file_path)
        node_address = self._node_address()
        blob = await self.blobs.add_from_path(file_path)
        return ObjectEntry(
            node_address=node_address,
            file_hash=blob.hash,
            name=name,
            kind=ObjectKind.FILE,
            size=blob.size,
        )

    async def export_file_object_entry(
        self,
        object_entry: ObjectEntry,
        custom_output_path: str | os.PathLike[str] | None = None,
    ) -> Path:
        """Write a downloaded file object to disk and return where it went."""
        output_path = _output_path(object_entry, custom_output_path)
        await self._export(object_entry.file_hash, output_path)
        return output_path

    async def create_folder_object_entry(
        self, src_path: str | os.PathLike[str]
    ) -> tuple[ObjectEntry, Path]:
        """Compress a folder, import it and return its entry and the temporary zip path."""
        source = Path(src_path)
        name = _object_name(source)
        node_address = self._node_address()
        zip_path = create_temporal_zip_file(PUBLISHED_FOLDERS_SUBFOLDER)
        try:
            await asyncio.to_thread(compress_directory, source, zip_path)
        except ValueError:
            raise NotUnicodePathError() from None
        blob = await self.blobs.add_from_path(zip_path)
        entry = ObjectEntry(
            node_address=node_address,
            file_hash=blob.hash,
            name=name,
            kind=ObjectKind.FOLDER,
            size=blob.size,
        )
        return entry, zip_path

    async def export_folder_object_entry(
        self,
        object_entry: ObjectEntry,
        custom_output_path: str | os.PathLike[str] | None = None,
    ) -> tuple[Path, Path | None]:
        """Extract a downloaded folder object; return its path and the temporary zip path."""
        output_path = _output_path(object_entry, custom_output_path)
        zip_path = create_temporal_zip_file(DOWNLOADED_FOLDERS_SUBFOLDER)
        await self._export(object_entry.file_hash, zip_path)
        await asyncio.to_thread(decompress_directory, zip_path, output_path)
        return output_path, zip_path