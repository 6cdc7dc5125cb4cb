"""In-memory content-addressed blob store that can serve and fetch blobs over TCP."""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import os
import re
from dataclasses import dataclass
from pathlib import Path

_HASH_PATTERN = re.compile(r"[0-9a-f]{64}")


@dataclass(frozen=True)
class Blob:
    """A stored blob: its content hash and size in bytes."""

    hash: str
    size: int


def _digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _check_hash(blob_hash: str) -> str:
    if not isinstance(blob_hash, str) or not _HASH_PATTERN.fullmatch(blob_hash):
        raise ValueError(f"invalid blob hash: {blob_hash!r}")
    return blob_hash


def _format_address(host: str, port: int) -> str:
    return f"[{host}]:{port}" if ":" in host else f"{host}:{port}"


def _parse_address(node_address: str) -> tuple[str, int]:
    host, sep, port = node_address.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ValueError(f"invalid node address: {node_address!r}")
    return host.strip("[]"), int(port)


class BlobStore:
    """Blobs kept in memory, addressed by their SHA-256 hash."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}
        self._server: asyncio.base_events.Server | None = None
        self.node_address: str | None = None

    def _insert(self, data: bytes) -> Blob:
        blob_hash = _digest(data)
        self._blobs[blob_hash] = data
        return Blob(hash=blob_hash, size=len(data))

    def has(self, blob_hash: str) -> bool:
        """Tell whether the blob is in the store."""
        return blob_hash in self._blobs

    async def add_from_path(self, path: str | os.PathLike[str]) -> Blob:
        """Import a file into the store."""
        data = await asyncio.to_thread(Path(path).read_bytes)
        return self._insert(data)

    async def export(self, blob_hash: str, output_path: str | os.PathLike[str]) -> Path:
        """Copy a stored blob to a file."""
        try:
            data = self._blobs[blob_hash]
        except KeyError:
            raise KeyError(f"unknown blob {blob_hash}") from None
        target = Path(output_path)

        def write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await asyncio.to_thread(write)
        return target

    async def start(self, host: str = "127.0.0.1", port: int = 0) -> str:
        """Serve stored blobs to other nodes and return this node's address."""
        if self._server is not None:
            raise RuntimeError("the blob store is already serving")
        self._server = await asyncio.start_server(self._serve, host, port)
        sock_host, sock_port = self._server.sockets[0].getsockname()[:2]
        self.node_address = _format_address(sock_host, sock_port)
        return self.node_address

    async def close(self) -> None:
        """Stop serving blobs."""
        server, self._server = self._server, None
        self.node_address = None
        if server is not None:
            server.close()
            await server.wait_closed()

    async def _serve(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            line = await reader.readline()
            command, _, blob_hash = line.decode("ascii", "replace").strip().partition(" ")
            data = self._blobs.get(blob_hash) if command == "GET" else None
            if data is None:
                writer.write(b"ERR unknown blob\n")
            else:
                writer.write(f"OK {len(data)}\n".encode("ascii"))
                writer.write(data)
            await writer.drain()
        except (ConnectionError, ValueError, asyncio.LimitOverrunError):
            pass
        finally:
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()

    async def download(self, blob_hash: str, node_address: str) -> Blob:
        """Fetch a blob from another node into the store."""
        _check_hash(blob_hash)
        if blob_hash in self._blobs:
            return Blob(hash=blob_hash, size=len(self._blobs[blob_hash]))
        host, port = _parse_address(node_address)
        reader, writer = await asyncio.open_connection(host, port)
        try:
            writer.write(f"GET {blob_hash}\n".encode("ascii"))
            await writer.drain()
            header = (await reader.readline()).decode("ascii", "replace").strip()
            status, _, rest = header.partition(" ")
            if status != "OK" or not rest.isdigit():
                raise ConnectionError(
                    f"node {node_address} did not provide blob {blob_hash}: {header or 'no reply'}"
                )
            data = await reader.readexactly(int(rest))
        except asyncio.IncompleteReadError as error:
            raise ConnectionError(f"node {node_address} closed the connection early") from error
        finally:
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()
        if _digest(data) != blob_hash:
            raise ValueError(f"blob received from {node_address} does not match {blob_hash}")
        return self._insert(data)