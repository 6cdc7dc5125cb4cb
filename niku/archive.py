"""Zip compression of folders shared between peers."""

from __future__ import annotations

import os
import shutil
import stat
import time
import zipfile
from collections.abc import Iterator
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath, PureWindowsPath

from niku.common import get_cache_path

_PERMISSIONS = 0o755


def create_temporal_zip_file(subfolder_name: str) -> Path:
    """Return a fresh zip path inside the cache, creating its folder."""
    stamp = datetime.now(timezone.utc).isoformat()
    path = get_cache_path() / subfolder_name / f"{stamp}.zip"
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def _walk(path: Path) -> Iterator[Path]:
    yield path
    if path.is_dir() and not path.is_symlink():
        try:
            children = sorted(path.iterdir())
        except OSError:
            return
        for child in children:
            yield from _walk(child)


def _checked_name(relative: Path) -> str:
    name = relative.as_posix()
    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        raise ValueError("The given path is not encoded with UTF-8 (Unicode)") from None
    return name


def _zip_info(name: str, *, is_dir: bool) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(name, date_time=time.localtime()[:6])
    if is_dir:
        info.compress_type = zipfile.ZIP_STORED
        info.external_attr = ((stat.S_IFDIR | _PERMISSIONS) << 16) | 0x10
    else:
        info.compress_type = zipfile.ZIP_DEFLATED
        info.external_attr = (stat.S_IFREG | _PERMISSIONS) << 16
    return info


def compress_directory(src_path: str | os.PathLike[str], zip_path: str | os.PathLike[str]) -> None:
    """Write every file and folder under ``src_path`` into a zip archive."""
    src = Path(src_path)
    with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for path in _walk(src):
            relative = path.relative_to(src)
            name = _checked_name(relative)
            if path.is_file():
                info = _zip_info(name, is_dir=False)
                info.file_size = path.stat().st_size
                with path.open("rb") as source, archive.open(info, "w") as target:
                    shutil.copyfileobj(source, target)
            elif relative.parts:
                archive.writestr(_zip_info(name + "/", is_dir=True), b"")


def _enclosed_name(name: str) -> PurePosixPath | None:
    if "\0" in name or name.startswith(("/", "\\")) or PureWindowsPath(name).drive:
        return None
    path = PurePosixPath(name)
    depth = 0
    for part in path.parts:
        if part == "..":
            if depth == 0:
                return None
            depth -= 1
        else:
            depth += 1
    return path


def decompress_directory(
    zip_file_path: str | os.PathLike[str], destination_path: str | os.PathLike[str]
) -> None:
    """Extract a zip archive, skipping entries that would escape the destination."""
    destination = Path(destination_path)
    with zipfile.ZipFile(zip_file_path) as archive:
        for info in archive.infolist():
            relative = _enclosed_name(info.filename)
            if relative is None:
                continue
            target = destination.joinpath(*relative.parts)
            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            with archive.open(info) as source, target.open("wb") as output:
                shutil.copyfileobj(source, output)