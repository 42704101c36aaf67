"""
Wrap raw CSV bytes in a synthetic element so the transform engine can read
them as element content.
"""

import logging

logger = logging.getLogger(__name__)


def wrapped_size(buffer: bytes, tag: str) -> int:
    """Exact size of wrap_in_tag(buffer, tag): '<></>' plus 4 bytes per '&'."""
    return len(buffer) + len(tag.encode()) * 2 + 5 + buffer.count(b"&") * 4


def wrap_in_tag(buffer: bytes, tag: str) -> bytes:
    """
    Return <tag> + buffer with '&' escaped as '&amp;' + </tag>.

    The output is allocated once at its final size and filled in a single
    forward pass. An empty buffer stays empty: nothing to import is not an
    error.
    """
    if not buffer:
        return b""

    tag_bytes = tag.encode()
    size = wrapped_size(buffer, tag)
    out = bytearray(size)
    view = memoryview(buffer)
    pos = 0

    def put(chunk) -> None:
        nonlocal pos
        out[pos:pos + len(chunk)] = chunk
        pos += len(chunk)

    put(b"<" + tag_bytes + b">")
    start = 0
    while True:
        amp = buffer.find(b"&", start)
        if amp < 0:
            put(view[start:])
            break
        put(view[start:amp])
        put(b"&amp;")
        start = amp + 1
    put(b"</" + tag_bytes + b">")

    if pos != size or len(out) != size:
        logger.error(f"wrap_in_tag: output off by {size - pos} bytes")
        raise RuntimeError("wrapped buffer size mismatch")
    return bytes(out)
