"""tar+gzip packing and unpacking of workflow project directories.

The project archive is produced and consumed entirely in memory as three
layers: raw bytes, a single gzip member, and a tar stream. Both directions
enforce the same :class:`PackagingLimits`; an archive is never trusted to
respect them just because the packer did.
"""

from __future__ import annotations

import gzip
import io
import logging
import os
import posixpath
import stat
import tarfile
import threading
import zlib
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from .errors import (
    ArchiveTooLarge,
    CorruptArchiveError,
    FileTooLarge,
    LinksNotAllowed,
    OperationCancelled,
    PathEscapesRoot,
    PathTraversal,
    SymlinkNotAllowed,
    TooManyFiles,
    UnsafePath,
)
from .validation import confine_path

logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class PackagingLimits:
    """Quotas applied while packing and while unpacking."""

    max_file_size: int = 100 * 1024 * 1024
    max_total_size: int = 500 * 1024 * 1024
    max_files: int = 10_000


DEFAULT_LIMITS = PackagingLimits()


class _QuotaTracker:
    """Running counters for one pack or unpack pass."""

    def __init__(self, limits: PackagingLimits, *, action: str) -> None:
        self.limits = limits
        self.action = action
        self.file_count = 0
        self.total_size = 0

    def add_entry(self) -> None:
        self.file_count += 1
        if self.file_count > self.limits.max_files:
            raise TooManyFiles(
                f"too many files {self.action}: maximum {self.limits.max_files} files allowed"
            )

    def check_file_size(self, name: str, size: int) -> None:
        if size > self.limits.max_file_size:
            raise FileTooLarge(
                f"file too large {self.action}: {name} "
                f"(size: {size} bytes, max: {self.limits.max_file_size} bytes)"
            )

    def add_size(self, size: int) -> None:
        self.total_size += size
        if self.total_size > self.limits.max_total_size:
            raise ArchiveTooLarge(
                f"archive too large: total size {self.total_size} bytes exceeds "
                f"maximum {self.limits.max_total_size} bytes"
            )


def _check_cancel(cancel: threading.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise OperationCancelled("operation cancelled")


# Packing ---------------------------------------------------------------------


def _walk(root: str, directory: str) -> Iterator[tuple[os.DirEntry[str], str]]:
    """Yield ``(entry, relative_path)`` depth-first in lexical order.

    Hidden entries are skipped here, together with everything beneath hidden
    directories, so they are never visited at all.
    """

    with os.scandir(directory) as it:
        entries = sorted(it, key=lambda e: e.name)

    for entry in entries:
        if entry.is_symlink():
            raise SymlinkNotAllowed(f"symlinks not allowed: {entry.path}")

        rel = os.path.relpath(entry.path, root)
        if os.path.isabs(rel) or rel == os.pardir or rel.startswith(os.pardir + os.sep):
            raise PathTraversal(f"path traversal detected: {rel}")

        if entry.name.startswith("."):
            continue

        yield entry, rel
        if entry.is_dir(follow_symlinks=False):
            yield from _walk(root, entry.path)


def pack_directory(
    source_dir: str | os.PathLike[str],
    *,
    limits: PackagingLimits = DEFAULT_LIMITS,
    cancel: threading.Event | None = None,
) -> bytes:
    """Pack ``source_dir`` into a gzip-compressed tar archive and return its bytes.

    Hidden files and directories are left out. Symlinks anywhere in the tree,
    including ``source_dir`` itself, abort the pack, as does exceeding any quota
    in ``limits``.
    """

    root = os.path.normpath(os.path.abspath(os.fspath(source_dir)))
    if os.path.islink(root):
        raise SymlinkNotAllowed(f"symlinks not allowed: {root}")
    if not os.path.isdir(root):
        raise NotADirectoryError(f"not a directory: {root}")

    quota = _QuotaTracker(limits, action="in project")
    buffer = io.BytesIO()

    with gzip.GzipFile(fileobj=buffer, mode="wb", mtime=0) as gz:
        with tarfile.open(fileobj=gz, mode="w", format=tarfile.PAX_FORMAT) as tar:
            for entry, rel in _walk(root, root):
                _check_cancel(cancel)
                info = entry.stat(follow_symlinks=False)
                is_dir = stat.S_ISDIR(info.st_mode)
                is_file = stat.S_ISREG(info.st_mode)
                if not (is_dir or is_file):
                    logger.debug("Skipping special file %s", entry.path)
                    continue

                quota.add_entry()
                if is_file:
                    quota.check_file_size(entry.path, info.st_size)
                    quota.add_size(info.st_size)

                tarinfo = tar.gettarinfo(entry.path, arcname=Path(rel).as_posix())
                if is_file:
                    with open(entry.path, "rb") as handle:
                        tar.addfile(tarinfo, handle)
                else:
                    tar.addfile(tarinfo)

    logger.debug(
        "Packed %d entries (%d bytes) from %s", quota.file_count, quota.total_size, root
    )
    return buffer.getvalue()


# Unpacking -------------------------------------------------------------------


def _copy_bounded(source: BinaryIO, target: BinaryIO, name: str, quota: _QuotaTracker) -> int:
    """Copy at most ``max_file_size + 1`` bytes, failing if the cap is reached."""

    cap = quota.limits.max_file_size + 1
    copied = 0
    while copied < cap:
        chunk = source.read(min(COPY_CHUNK_SIZE, cap - copied))
        if not chunk:
            break
        target.write(chunk)
        copied += len(chunk)
    quota.check_file_size(name, copied)
    return copied


def _safe_member_path(name: str, root: Path) -> Path:
    cleaned = posixpath.normpath(name)
    if posixpath.isabs(cleaned) or os.path.isabs(cleaned) or ".." in cleaned.split("/"):
        raise UnsafePath(f"unsafe file path in archive: {name}")
    try:
        return confine_path(os.path.join(*cleaned.split("/")), root)
    except PathEscapesRoot:
        raise UnsafePath(f"path traversal detected: {name}") from None


def _check_resolved(target: Path, root: Path, name: str) -> None:
    # entries already on disk are resolved so a symlinked directory cannot redirect a write
    try:
        confine_path(os.path.realpath(target), os.path.realpath(root))
    except PathEscapesRoot:
        raise UnsafePath(f"entry resolves outside output directory: {name}") from None


_WRITE_FLAGS = (
    os.O_CREAT
    | os.O_WRONLY
    | os.O_TRUNC
    | getattr(os, "O_NOFOLLOW", 0)
    | getattr(os, "O_BINARY", 0)
)


def _write_member(
    tar: tarfile.TarFile, member: tarfile.TarInfo, target: Path, quota: _QuotaTracker
) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    source = tar.extractfile(member)
    if source is None:  # pragma: no cover - regular members always have data
        return
    # O_NOFOLLOW: never write through a symlink already present in the output dir
    fd = os.open(target, _WRITE_FLAGS, member.mode & 0o777)
    with os.fdopen(fd, "wb") as handle, source:
        _copy_bounded(source, handle, member.name, quota)


def unpack_archive(
    archive: bytes,
    output_dir: str | os.PathLike[str],
    *,
    limits: PackagingLimits = DEFAULT_LIMITS,
    cancel: threading.Event | None = None,
) -> Path:
    """Extract a tar+gzip ``archive`` into ``output_dir`` and return the root.

    Every entry name must stay within ``output_dir`` after cleaning. Symlink
    and hard-link entries abort extraction; other special entries are skipped.
    """

    os.makedirs(output_dir, exist_ok=True)
    root = Path(os.path.normpath(os.path.abspath(os.fspath(output_dir))))
    quota = _QuotaTracker(limits, action="in archive")

    try:
        with gzip.GzipFile(fileobj=io.BytesIO(archive), mode="rb") as gz:
            with tarfile.open(fileobj=gz, mode="r|") as tar:
                for member in tar:
                    _check_cancel(cancel)
                    _extract_member(tar, member, root, quota)
    except (tarfile.TarError, gzip.BadGzipFile, zlib.error, EOFError) as exc:
        raise CorruptArchiveError(f"failed to read project archive: {exc}") from exc

    logger.debug(
        "Extracted %d entries (%d bytes) into %s", quota.file_count, quota.total_size, root
    )
    return root


def _extract_member(
    tar: tarfile.TarFile, member: tarfile.TarInfo, root: Path, quota: _QuotaTracker
) -> None:
    if not member.name:
        return

    target = _safe_member_path(member.name, root)
    _check_resolved(target, root, member.name)

    quota.add_entry()
    quota.check_file_size(member.name, member.size)
    quota.add_size(member.size)

    if member.isdir():
        target.mkdir(mode=(member.mode & 0o777) | stat.S_IRWXU, parents=True, exist_ok=True)
    elif member.isreg():
        _write_member(tar, member, target, quota)
    elif member.issym() or member.islnk():
        raise LinksNotAllowed(f"links not allowed in archive: {member.name}")
    else:
        logger.debug("Skipping unsupported archive entry %s", member.name)


__all__ = [
    "COPY_CHUNK_SIZE",
    "DEFAULT_LIMITS",
    "PackagingLimits",
    "pack_directory",
    "unpack_archive",
]
