import pytest

from niku.blobs import Blob, BlobStore


@pytest.mark.asyncio
async def test_add_and_export_round_trip(tmp_path):
    source = tmp_path / "in.bin"
    source.write_bytes(b"hello blobs" * 100)
    store = BlobStore()
    blob = await store.add_from_path(source)
    assert blob.size == len(b"hello blobs" * 100)
    assert store.has(blob.hash)
    output = await store.export(blob.hash, tmp_path / "out" / "copy.bin")
    assert output.read_bytes() == source.read_bytes()


@pytest.mark.asyncio
async def test_hash_depends_only_on_content(tmp_path):
    first, second, third = tmp_path / "a", tmp_path / "b", tmp_path / "c"
    first.write_bytes(b"same")
    second.write_bytes(b"same")
    third.write_bytes(b"other")
    store = BlobStore()
    blob_a = await store.add_from_path(first)
    blob_b = await store.add_from_path(second)
    blob_c = await store.add_from_path(third)
    assert blob_a == blob_b
    assert blob_a.hash != blob_c.hash
    assert len(blob_a.hash) == 64


@pytest.mark.asyncio
async def test_export_unknown_blob(tmp_path):
    store = BlobStore()
    with pytest.raises(KeyError):
        await store.export("0" * 64, tmp_path / "missing")


@pytest.mark.asyncio
async def test_download_between_stores(tmp_path):
    source = tmp_path / "shared.txt"
    source.write_bytes(b"peer to peer content")
    sender, receiver = BlobStore(), BlobStore()
    blob = await sender.add_from_path(source)
    address = await sender.start()
    try:
        assert address == sender.node_address
        assert address.startswith("127.0.0.1:")
        fetched = await receiver.download(blob.hash, address)
    finally:
        await sender.close()
    assert fetched == Blob(hash=blob.hash, size=blob.size)
    assert receiver.has(blob.hash)
    output = await receiver.export(blob.hash, tmp_path / "received.txt")
    assert output.read_bytes() == b"peer to peer content"


@pytest.mark.asyncio
async def test_download_missing_blob_fails():
    sender, receiver = BlobStore(), BlobStore()
    address = await sender.start()
    try:
        with pytest.raises(ConnectionError):
            await receiver.download("f" * 64, address)
    finally:
        await sender.close()
    assert not receiver.has("f" * 64)


@pytest.mark.asyncio
async def test_download_rejects_invalid_hash():
    store = BlobStore()
    with pytest.raises(ValueError):
        await store.download("not-a-hash", "127.0.0.1:1")


@pytest.mark.asyncio
async def test_download_rejects_invalid_address():
    store = BlobStore()
    with pytest.raises(ValueError):
        await store.download("a" * 64, "no-port-here")


@pytest.mark.asyncio
async def test_start_twice_is_an_error():
    store = BlobStore()
    await store.start()
    try:
        with pytest.raises(RuntimeError):
            await store.start()
    finally:
        await store.close()
    assert store.node_address is None