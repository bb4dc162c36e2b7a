from __future__ import annotations

import io
import zipfile
import zlib
from typing import Iterable

from cldf.errors import IntegrityError, StructureError


FIXED_ZIP_TIME = (1980, 1, 1, 0, 0, 0)
COMPRESS_LEVEL = 9


def _zip_info(name: str) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(name)
    info.date_time = FIXED_ZIP_TIME
    info.compress_type = zipfile.ZIP_DEFLATED
    info.external_attr = 0o644 << 16
    info.create_system = 3
    return info


def pack_members(members: Iterable[tuple[str, bytes]]) -> bytes:
    """Pack (name, bytes) pairs into one ZIP in the given order.

    Member metadata is fixed, so identical members always give identical bytes.
    """

    buf = io.BytesIO()
    seen: set[str] = set()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=COMPRESS_LEVEL) as z:
        for name, data in members:
            if name in seen:
                raise ValueError(f"duplicate container member: {name}")
            seen.add(name)
            z.writestr(_zip_info(name), bytes(data), compress_type=zipfile.ZIP_DEFLATED, compresslevel=COMPRESS_LEVEL)
    return buf.getvalue()


def unpack_members(data: bytes, *, damaged: list[str] | None = None) -> dict[str, bytes]:
    """Return member name -> bytes in container order.

    Fail-closed: an unreadable container, duplicate names and unsafe paths
    are StructureError. A member whose compressed data no longer inflates to
    its recorded CRC is an IntegrityError naming it, unless a damaged list is
    given, in which case the name is appended there and the member skipped.
    """

    if not isinstance(data, (bytes, bytearray)):
        raise TypeError("container data must be bytes")

    members: dict[str, bytes] = {}
    try:
        with zipfile.ZipFile(io.BytesIO(bytes(data))) as z:
            for info in z.infolist():
                name = info.filename
                if info.is_dir():
                    continue
                if name.startswith("/") or ".." in name.split("/") or "\\" in name:
                    raise StructureError(f"unsafe member path in container: {name}")
                if name in members or (damaged is not None and name in damaged):
                    raise StructureError(f"duplicate member in container: {name}")
                try:
                    members[name] = z.read(info)
                except (zipfile.BadZipFile, zlib.error, EOFError) as e:
                    if damaged is None:
                        raise IntegrityError(f"{name}: member data is corrupt: {e}", document=name) from e
                    damaged.append(name)
    except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        raise StructureError(f"container is not a readable ZIP archive: {e}") from e
    return members
