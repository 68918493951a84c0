"""
MJPEG byte stream -> discrete JPEG frames.

The preview process writes JPEGs back to back with no framing. A frame ends at
the first JPEG end-of-image marker (FF D9); everything up to and including it is
one image.
"""
import logging
import threading
from typing import BinaryIO, List, Optional

from camera.broadcast import FrameHub

logger = logging.getLogger(__name__)

END_OF_IMAGE = b"\xff\xd9"


class FrameSplitter:
    """
    Incremental frame splitter.

    Produces the same frames as appending one byte at a time and cutting
    whenever the buffer ends with the marker, including markers split across
    two chunks.
    """

    def __init__(self):
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        """Bytes held that are not yet terminated by a marker."""
        return len(self._buffer)

    def feed(self, chunk: bytes) -> List[bytes]:
        frames = []
        # A marker may straddle the previous chunk's last byte.
        search_from = max(len(self._buffer) - 1, 0)
        self._buffer.extend(chunk)

        start = 0
        while True:
            pos = self._buffer.find(END_OF_IMAGE, max(search_from, start))
            if pos == -1:
                break
            end = pos + len(END_OF_IMAGE)
            frames.append(bytes(self._buffer[start:end]))
            start = end

        if start:
            del self._buffer[:start]
        return frames

    def reset(self) -> None:
        self._buffer.clear()


class FrameExtractor:
    """
    Reads a preview process's stdout and publishes each complete frame.

    Has read access to the stream only; the supervisor owns the process. The
    reader stops quietly at EOF or on a read error, which is what happens when
    the process is killed. Unterminated trailing bytes are dropped.
    """

    CHUNK_SIZE = 64 * 1024

    def __init__(self, stream: BinaryIO, hub: FrameHub, name: str = "frame-extractor"):
        self._stream = stream
        self._hub = hub
        self._splitter = FrameSplitter()
        self._thread: Optional[threading.Thread] = None
        self._name = name
        self.frames_published = 0

    def start(self) -> "FrameExtractor":
        if self._thread is not None:
            return self
        self._thread = threading.Thread(target=self.run, name=self._name, daemon=True)
        self._thread.start()
        return self

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run(self) -> None:
        # read1 returns as soon as some bytes are available.
        read = getattr(self._stream, "read1", self._stream.read)
        try:
            while True:
                chunk = read(self.CHUNK_SIZE)
                if not chunk:
                    break
                for frame in self._splitter.feed(chunk):
                    self._hub.publish(frame)
                    self.frames_published += 1
        except (OSError, ValueError) as e:
            logger.debug("Frame stream read failed: %s", e)
        finally:
            if self._splitter.pending:
                logger.debug("Dropping %d unterminated bytes", self._splitter.pending)
            self._splitter.reset()
            try:
                self._stream.close()
            except OSError:
                pass
        logger.debug("Frame extractor finished after %d frames", self.frames_published)
