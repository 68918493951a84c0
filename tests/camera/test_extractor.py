import io

import pytest

from camera.broadcast import FrameHub
from camera.extractor import END_OF_IMAGE, FrameExtractor, FrameSplitter
from tests.fakes.fake_commands import FakeProcess
from tests.fakes.jpeg import decodes, make_jpeg
from tests.helpers import wait_for


class RecordingHub(FrameHub):
    def __init__(self):
        super().__init__()
        self.published = []

    def publish(self, frame: bytes) -> int:
        self.published.append(bytes(frame))
        return super().publish(frame)


class ChunkedStream(io.RawIOBase):
    """Hands out data in fixed-size chunks to exercise chunk boundaries."""

    def __init__(self, data: bytes, chunk: int):
        self._data = data
        self._chunk = chunk
        self._pos = 0

    def readable(self):
        return True

    def read(self, size=-1):
        out = self._data[self._pos:self._pos + self._chunk]
        self._pos += len(out)
        return out


class FailingStream(io.RawIOBase):
    def __init__(self, data: bytes):
        self._data = data

    def readable(self):
        return True

    def read(self, size=-1):
        if self._data:
            out, self._data = self._data, b""
            return out
        raise OSError("pipe broke")


def test_two_frames_are_published_in_order():
    a = b"\xff\xd8jpegA"
    b = b"\xff\xd8jpegB"
    hub = RecordingHub()

    FrameExtractor(io.BytesIO(a + END_OF_IMAGE + b + END_OF_IMAGE), hub).run()

    assert hub.published == [a + END_OF_IMAGE, b + END_OF_IMAGE]
    assert hub.latest() == (2, b + END_OF_IMAGE)


def test_real_jpegs_are_split_byte_identical():
    images = [make_jpeg(color=(i * 40, 255 - i * 40, 10)) for i in range(5)]
    hub = RecordingHub()

    extractor = FrameExtractor(io.BytesIO(b"".join(images)), hub)
    extractor.run()

    assert hub.published == images
    assert extractor.frames_published == 5
    assert all(decodes(frame) for frame in hub.published)


@pytest.mark.parametrize("chunk", [1, 2, 3, 7, 4096])
def test_marker_split_across_chunks(chunk):
    images = [make_jpeg(color=(0, 0, 255)), make_jpeg(color=(0, 255, 0))]
    hub = RecordingHub()

    FrameExtractor(ChunkedStream(b"".join(images), chunk), hub).run()

    assert hub.published == images


def test_trailing_partial_frame_is_never_published():
    complete = make_jpeg()
    partial = make_jpeg()[:-2]
    hub = RecordingHub()

    FrameExtractor(io.BytesIO(complete + partial), hub).run()

    assert hub.published == [complete]


def test_read_error_ends_quietly():
    hub = RecordingHub()
    frame = b"\xff\xd8x" + END_OF_IMAGE

    FrameExtractor(FailingStream(frame + b"\xff\xd8half"), hub).run()

    assert hub.published == [frame]


def test_extractor_closes_its_stream():
    stream = io.BytesIO(b"")
    FrameExtractor(stream, RecordingHub()).run()
    assert stream.closed


def test_splitter_keeps_unterminated_bytes_pending():
    splitter = FrameSplitter()
    assert splitter.feed(b"abc\xff") == []
    assert splitter.pending == 4
    assert splitter.feed(b"\xd9def") == [b"abc\xff\xd9"]
    assert splitter.pending == 3


def test_splitter_cuts_at_first_marker_after_repeated_ff():
    splitter = FrameSplitter()
    assert splitter.feed(b"a\xff\xff\xd9\xd9") == [b"a\xff\xff\xd9"]
    assert splitter.pending == 1


def test_slot_never_holds_a_concatenation():
    a = make_jpeg(color=(1, 2, 3))
    b = make_jpeg(color=(200, 100, 50))
    hub = RecordingHub()

    FrameExtractor(io.BytesIO(a + b), hub).run()

    assert a + b not in hub.published
    assert hub.published == [a, b]


def test_background_extractor_follows_a_live_pipe():
    process = FakeProcess()
    hub = RecordingHub()
    extractor = FrameExtractor(process.stdout, hub).start()

    frame = make_jpeg()
    process.emit(frame[:10])
    process.emit(frame[10:])
    wait_for(lambda: hub.published)
    assert hub.published == [frame]

    process.emit(b"\xff\xd8unterminated")
    process.kill()
    extractor.join(2.0)

    assert not extractor.is_alive()
    assert hub.published == [frame]
