import io

import pytest

from metadump.writer import ByteCountingWriter
from metadump.dummywriter import DummyWriter
from metadump.exceptions import WriteFault


def test_offset_counts_bytes():
    f = io.BytesIO()
    writer = ByteCountingWriter(f)
    assert writer.offset == 0
    assert writer.write("hello") == 5
    assert writer.offset == 5
    assert writer.write("àè") == 4
    assert writer.offset == 9
    assert f.getvalue() == "helloàè".encode()


def test_empty_write():
    f = io.BytesIO()
    writer = ByteCountingWriter(f)
    assert writer.write("") == 0
    assert writer.offset == 0


class BrokenFile(io.RawIOBase):
    def __init__(self, fail_after=0, short=False):
        self.fail_after = fail_after
        self.short = short
        self.writes = 0

    def writable(self):
        return True

    def write(self, data):
        self.writes += 1
        if self.writes > self.fail_after:
            if self.short:
                return len(data) - 1
            raise OSError(28, "No space left on device")
        return len(data)


def test_error_becomes_fault():
    writer = ByteCountingWriter(BrokenFile(fail_after=1), section="predata")
    writer.write("ok")
    with pytest.raises(WriteFault) as excinfo:
        writer.write("boom")

    assert excinfo.value.section == "predata"
    assert "No space left" in str(excinfo.value)
    assert writer.offset == 2


def test_failed_writer_unusable():
    f = BrokenFile(fail_after=0)
    writer = ByteCountingWriter(f)
    with pytest.raises(WriteFault):
        writer.write("boom")
    with pytest.raises(WriteFault):
        writer.write("again")
    assert f.writes == 1


def test_short_write():
    writer = ByteCountingWriter(BrokenFile(short=True))
    with pytest.raises(WriteFault) as excinfo:
        writer.write("hello")
    assert "short write" in str(excinfo.value)
    assert writer.offset == 0


def test_closed_file():
    f = io.BytesIO()
    writer = ByteCountingWriter(f)
    f.close()
    with pytest.raises(WriteFault):
        writer.write("hello")


def test_open_close(tmp_path):
    fn = str(tmp_path / "out.sql")
    with ByteCountingWriter.open(fn, section="global") as writer:
        writer.write("select 1;\n")
        assert writer.filename == fn

    assert writer.outfile.closed
    with open(fn, "rb") as f:
        assert f.read() == b"select 1;\n"


def test_open_error(tmp_path):
    fn = str(tmp_path / "nosuchdir" / "out.sql")
    with pytest.raises(WriteFault) as excinfo:
        ByteCountingWriter.open(fn, section="global")
    assert excinfo.value.filename == fn


def test_not_owned_not_closed():
    f = io.BytesIO()
    writer = ByteCountingWriter(f)
    writer.close()
    assert not f.closed


def test_dummy_writer():
    writer = DummyWriter(section="global")
    writer.write("abc")
    writer.write("ç")
    assert writer.offset == 5
    writer.flush()
    writer.close()
