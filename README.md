# niku

Send a file or a folder from one peer to another. The sender registers an
object entry with a discovery backend and gets back a human-friendly ID such
as `test-brave-river-jump`; the receiver looks the ID up on the backend and
then fetches the object's bytes directly from the sender.

Folders are compressed into a zip archive in the user cache directory before
sending, and unpacked on arrival.

## Installation

```
pip install niku
```

Python 3.10 or newer is required. The package depends on `aiohttp` and
`platformdirs`.

## Command line

### Sending

```
niku send ./holiday-photos
```

The path must be a file or a folder. The command prints the object's ID and
the `niku receive` command to run on the other side, then sends a keep-alive
request to the backend at once and again every 120 seconds (every 2 seconds
in debug mode) until it is stopped with Ctrl+C. A temporary folder archive
is removed when it stops.

### Receiving

```
niku receive test-brave-river-jump
```

Options:

- `-o`, `--output PATH` – write the object to this path instead of a path
  named after the object in the current directory.
- `-y`, `--yes` – download without asking. Otherwise the command asks
  `Download ...? (Y/n):` and goes on for `y`, `yes` or an empty answer.

Underscores in the ID are accepted in place of dashes. The part of the ID
before the first dash selects the backend: `test` means
`http://localhost:8080`, `the` means `https://eu1.backend.niku.app`; any
other prefix is rejected as an invalid ID.

### Cleaning the cache

Temporary archives live under `app.niku` in the user cache directory.
Remove that directory with:

```
niku prune
```

### Environment

| Variable         | Meaning                                                                 |
|------------------|-------------------------------------------------------------------------|
| `NIKU_LOG`       | Log level of `niku`: `trace`, `debug`, `info`, `warn`, `error` or `off`; default `warn`. Use `info` to see the ID printed by `niku send`. |
| `APP_NIKU_DEBUG` | `1`, `true`, `yes` or `on` turns on debug mode: new objects are published to `http://localhost:8080` instead of `https://eu1.backend.niku.app`, and the sender keeps objects alive every 2 seconds. |

## Running the discovery backend

```
niku-backend
```

The backend listens on `0.0.0.0`. It is configured through environment
variables:

| Variable                            | Default | Meaning                                     |
|-------------------------------------|---------|---------------------------------------------|
| `APP_NIKU_BACKEND_PORT`             | `4000`  | Port to listen on                           |
| `APP_NIKU_BACKEND_OBJECT_ID_PREFIX` | `test`  | Prefix of every generated object ID         |
| `APP_NIKU_BACKEND_WORDS_DIR`        | `niku/data` inside the package | Folder holding the word lists |
| `APP_NIKU_BACKEND_LOG`              | `INFO`  | Log level of the backend                    |

IDs are built as `<prefix>-<adjective>-<noun>-<verb>` from three JSON files
in the words folder: `adjectives.json`, `nouns.json` and `verbs.json`, each a
non-empty list of strings.

Endpoints:

- `PUT /objects` – register an object entry; returns its `id` and a private
  `keep_alive_key`.
- `GET /objects/{id}` – look up a registered object entry; unknown IDs get a
  404 with code `0001@NKBE`.
- `POST /objects/{id}/keep-alive` – restart the object's deletion timer; the
  body is `{"keep_alive_key": "..."}`. Unknown keys get a 404 with code
  `0002@NKBE`.

An object is deleted 5 seconds after it was registered or last kept alive.

## Library use

```python
from niku.common import format_bytes_with_unit

format_bytes_with_unit(1500)  # '1.46 KiB'
```

`niku.peer.Peer` is an async context manager that publishes, looks up,
downloads and exports object entries:

```python
from niku.peer import Peer

async with Peer() as peer:
    entry = await peer.retrieve_object_entry("test-brave-river-jump")
    await peer.download_object_entry(entry)
    await peer.export_file_object_entry(entry, "received.bin")
```

Other modules:

- `niku.backend` – `RegisteredObjectData`, `ObjectKeepAliveRequest` and
  `ErrorResponse`, the messages exchanged with the backend.
- `niku.object` – `ObjectEntry` and `ObjectKind`.
- `niku.archive` – `compress_directory`, `decompress_directory` and
  `create_temporal_zip_file`.
- `niku.blobs` – `BlobStore`, an in-memory store of blobs addressed by their
  SHA-256 hash that serves them to, and fetches them from, other nodes over
  TCP.
- `niku.server` – `BackendState`, `create_app` and `run` for embedding the
  backend.

## What it does not do

- The word lists the backend needs are not shipped with the package. Point
  `APP_NIKU_BACKEND_WORDS_DIR` at a folder holding them; without it
  `niku-backend` stops with "Parsing the list of words failed".
- A peer serves its blobs on `127.0.0.1` by default, and the `niku` command
  uses that default, so sender and receiver must run on the same machine
  unless `Peer(host=...)` is used from code. There is no NAT traversal or
  relaying.
- Blobs are held in memory only; nothing persists once the sender stops.
- There is no graphical interface and no encryption of transferred data.

## Development

```
pip install -e ".[test]"
pytest
```