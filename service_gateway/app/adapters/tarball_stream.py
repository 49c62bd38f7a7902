"""
Decompressing pass-through stream for upstream tarball responses.
"""

import zlib
from typing import AsyncIterator, Iterator, Optional

import httpx


GZIP_MAGIC = b"\x1f\x8b"
_GZIP_WBITS = zlib.MAX_WBITS | 16
DEFAULT_MAX_BLOCK = 64 * 1024


class GunzipMaybe:
    """Incremental decoder that inflates gzip input and passes anything else through.

    Input is sniffed for the gzip magic bytes. Concatenated gzip members are
    inflated one after another; bytes following a member that are not gzip
    are passed through unchanged. Inflated output is produced in blocks of at
    most ``max_block`` bytes.
    """

    def __init__(self, max_block: int = DEFAULT_MAX_BLOCK):
        self.max_block = max_block
        self._pending = b""
        self._passthrough = False
        self._decompressor: Optional["zlib._Decompress"] = None

    def feed(self, chunk: bytes) -> Iterator[bytes]:
        """Yield the decoded blocks for ``chunk``. The iterator must be exhausted."""
        data = chunk

        while data:
            if self._decompressor is None and not self._passthrough:
                self._pending += data
                if len(self._pending) < len(GZIP_MAGIC):
                    return
                data, self._pending = self._pending, b""
                if data.startswith(GZIP_MAGIC):
                    self._decompressor = zlib.decompressobj(_GZIP_WBITS)
                else:
                    self._passthrough = True

            if self._passthrough:
                yield data
                return

            while True:
                block = self._decompressor.decompress(data, self.max_block)
                if block:
                    yield block
                data = self._decompressor.unconsumed_tail
                # A short block with no tail left means the input is used up
                if self._decompressor.eof or (not data and len(block) < self.max_block):
                    break

            if not self._decompressor.eof:
                return

            # Member finished; sniff whatever follows it
            data = self._decompressor.unused_data
            self._decompressor = None

    def flush(self) -> bytes:
        if self._decompressor is not None:
            return self._decompressor.flush()
        tail, self._pending = self._pending, b""
        return tail


class TarballStream:
    """Single-consumer async byte stream over a decompressed tarball.

    Iterating the stream drains and then releases the underlying upstream
    response. Callers that stop early must call ``aclose()`` (or use the
    stream as an async context manager) to hand the connection back to the
    pool.
    """

    def __init__(self, response: httpx.Response):
        self._response = response
        self._consumed = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[bytes]:
        if self._consumed:
            raise RuntimeError("Tarball stream has already been consumed")
        self._consumed = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        decoder = GunzipMaybe()
        try:
            async for chunk in self._response.aiter_bytes():
                for block in decoder.feed(chunk):
                    yield block
            tail = decoder.flush()
            if tail:
                yield tail
        finally:
            await self.aclose()

    async def read(self) -> bytes:
        """Drain the whole stream into memory."""
        return b"".join([chunk async for chunk in self])

    async def aclose(self) -> None:
        if not self._closed:
            self._closed = True
            await self._response.aclose()

    async def __aenter__(self) -> "TarballStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
