"""@package docstring
Base64 framing around a zlib inflate/deflate stream

GIFTI names this encoding GZipBase64Binary, although writers store a zlib
stream rather than a gzip file; the decoder here accepts either.

Copyright (c) 2019-2026 Qianqian Fang <q.fang at neu.edu>
"""

__all__ = ["base64zlibdecode", "base64zlibencode", "bytenormalize"]

##====================================================================================
## dependent libraries
##====================================================================================

import zlib
import base64
import binascii

import numpy as np

from .errors import TruncatedPayload, UnrecognizedEncoding

##====================================================================================
## global variables
##====================================================================================

_CHUNKSIZE = 1024


def bytenormalize(chunk):
    """
    Map a chunk of signed bytes (-128..127) to unsigned bytes (0..255).

    ``bytes``/``bytearray`` are already unsigned and are returned unchanged;
    integer sequences and int8 arrays have 256 added to negative entries.
    """
    if isinstance(chunk, (bytes, bytearray, memoryview)):
        return bytes(chunk)
    arr = np.asarray(chunk).astype(np.int16)
    return np.where(arr < 0, arr + 256, arr).astype(np.uint8).tobytes()


def base64zlibdecode(text, chunksize=_CHUNKSIZE):
    """
    Decode a base64 string holding a zlib (or gzip) stream into raw bytes.

    The inflater is drained ``chunksize`` bytes at a time. A read that yields no
    output while input is still pending is retried rather than taken as the end
    of the stream.
    """
    try:
        raw = base64.b64decode(text)
    except (binascii.Error, ValueError) as err:
        raise UnrecognizedEncoding("base64 payload", str(err)) from err

    inflater = zlib.decompressobj(zlib.MAX_WBITS | 32)
    pending = raw
    chunks = []
    try:
        while not inflater.eof:
            chunk = inflater.decompress(pending, chunksize)
            pending = inflater.unconsumed_tail
            if chunk:
                chunks.append(bytenormalize(chunk))
            elif not pending:
                break
    except zlib.error as err:
        raise UnrecognizedEncoding("compressed payload", str(err)) from err

    if raw and not inflater.eof:
        raise TruncatedPayload(
            "end of stream",
            len(raw),
            msg=f"compressed payload of {len(raw)} bytes ends before its end marker",
        )
    return b"".join(chunks)


def base64zlibencode(data, chunksize=_CHUNKSIZE, level=-1):
    """Compress ``data`` into a zlib stream and return it as a base64 str."""
    data = bytenormalize(data)
    deflater = zlib.compressobj(level)
    chunks = []
    for pos in range(0, len(data), chunksize):
        chunks.append(bytenormalize(deflater.compress(data[pos : pos + chunksize])))
    chunks.append(bytenormalize(deflater.flush()))
    return base64.b64encode(b"".join(chunks)).decode("ascii")
