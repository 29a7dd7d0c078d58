"""@package docstring
Open a file name, an in-memory buffer or a caller-owned binary stream

Copyright (c) 2019-2026 Qianqian Fang <q.fang at neu.edu>
"""

__all__ = ["opensource", "sourcedir"]

import io
import os
import re
import zlib
from contextlib import contextmanager


@contextmanager
def opensource(source):
    """
    Yield a seekable binary stream for ``source``.

    File names are opened (and, for ``.gz`` suffixes, inflated into memory) and
    closed on exit. A caller-owned stream is handed over as-is and seeked back to
    its entry position on every exit path, including errors.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        yield io.BytesIO(bytes(source))
    elif isinstance(source, (str, os.PathLike)):
        filename = os.fspath(source)
        with open(filename, "rb") as fid:
            if re.search(r"\.[Gg][Zz]$", filename):
                yield io.BytesIO(zlib.decompress(fid.read(), zlib.MAX_WBITS | 32))
            else:
                yield fid
    else:
        pos = source.tell()
        try:
            yield source
        finally:
            source.seek(pos)


def sourcedir(source):
    """Directory holding ``source`` if it is a file name, else None."""
    if isinstance(source, (str, os.PathLike)):
        return os.path.dirname(os.path.abspath(os.fspath(source)))
    return None
