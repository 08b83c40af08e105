"""Go module ``h1:`` checksums, as recorded in go.sum files."""

from __future__ import annotations

import base64
import hashlib
import io
import zipfile
from typing import Callable, Iterable


def hash1(files: Iterable[str], open_file: Callable[[str], bytes]) -> str:
    """Return the h1 hash of the named files, reading content with open_file.

    The hash is SHA-256 over a summary of ``<sha256 hex>  <name>\\n`` lines,
    one per file in sorted order.
    """
    summary = hashlib.sha256()
    for name in sorted(files):
        if "\n" in name:
            raise ValueError("dirhash: filenames with newlines are not supported")
        digest = hashlib.sha256(open_file(name)).hexdigest()
        summary.update(f"{digest}  {name}\n".encode())
    return "h1:" + base64.b64encode(summary.digest()).decode("ascii")


def hash_zip(data: bytes) -> str:
    """Return the h1 hash of an in-memory module zip file."""
    with zipfile.ZipFile(io.BytesIO(data)) as z:
        names = z.namelist()
        return hash1(names, z.read)
