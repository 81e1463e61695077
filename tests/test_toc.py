import io
import threading

import pytest

from metadump.toc import TableOfContents, TOCEntry
from metadump.exceptions import TocError


def sample_toc():
    toc = TableOfContents()
    toc.add_entry("global", "", "", "session-gucs", 0, 100)
    toc.add_entry("global", "", "mydb", "database", 100, 130)
    toc.add_entry("global", "", "alice", "role", 130, 200)
    toc.add_entry("predata", "", "", "session-gucs", 0, 100)
    toc.add_entry("predata", "public", "t", "predata-shell-type", 100, 120)
    toc.add_entry("predata", "public", "f(t)", "predata-function", 120, 300)
    toc.add_entry("predata", "public", "t", "predata-type", 300, 400)
    return toc


def test_entries_order():
    toc = sample_toc()
    assert len(toc) == 7
    assert [e.name for e in toc.entries("global")] == ["", "mydb", "alice"]
    assert [e.section for e in toc.entries()][:3] == ["global"] * 3
    assert toc.entries("postdata") == []


def test_lookup():
    toc = sample_toc()
    entries = toc.lookup("predata", "public", "t")
    assert [e.kind for e in entries] == ["predata-shell-type", "predata-type"]
    assert toc.get("predata", "public", "t").kind == "predata-type"
    assert toc.get("predata", "public", "t", kind="predata-shell-type").end == 120
    assert toc.get("predata", "public", "nope") is None
    assert toc.lookup("global", "public", "t") == []


@pytest.mark.parametrize(
    "args",
    [
        ("nosection", "", "x", "role", 0, 1),
        ("global", "", "x", "nokind", 0, 1),
        ("global", "", "x", "role", 10, 5),
        ("global", "", "x", "role", -1, 5),
    ],
)
def test_bad_entry(args):
    toc = TableOfContents()
    with pytest.raises(ValueError):
        toc.add_entry(*args)


def test_overlap():
    toc = TableOfContents()
    toc.add_entry("global", "", "a", "role", 0, 10)
    with pytest.raises(ValueError):
        toc.add_entry("global", "", "b", "role", 5, 15)

    # other sections have their own offsets
    toc.add_entry("predata", "public", "b", "predata-type", 5, 15)


def test_empty_entry():
    toc = TableOfContents()
    toc.add_entry("global", "", "a", "database", 10, 10)
    toc.add_entry("global", "", "b", "database-guc", 10, 20)
    assert toc.get("global", "", "a").size == 0


def test_round_trip():
    toc = sample_toc()
    data = toc.dump()
    assert data.startswith("version: 1\n")

    toc2 = TableOfContents.load(data)
    assert toc2.entries() == toc.entries()


def test_save_load(tmp_path):
    fn = str(tmp_path / "toc.yaml")
    toc = sample_toc()
    toc.save(fn)
    assert not (tmp_path / "toc.yaml.tmp").exists()

    toc2 = TableOfContents.from_file(fn)
    assert toc2.entries() == toc.entries()


def test_save_error_cleanup(tmp_path, monkeypatch):
    """A failed save leaves neither the toc nor its temporary file."""
    fn = str(tmp_path / "toc.yaml")
    toc = sample_toc()

    def broken_dump(stream=None):
        stream.write("version: 1\n")
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(toc, "dump", broken_dump)
    with pytest.raises(OSError):
        toc.save(fn)

    assert list(tmp_path.iterdir()) == []


def test_entry_eq():
    e1 = TOCEntry("global", "", "a", "role", 0, 10)
    e2 = TOCEntry("global", "", "a", "role", 0, 10)
    e3 = TOCEntry("global", "", "a", "role", 0, 11)
    assert e1 == e2
    assert e1 != e3
    assert len({e1, e2, e3}) == 2


@pytest.mark.parametrize(
    "data",
    [
        "",
        "[]",
        "version: 1",
        "sections: {}",
        "version: 2\nsections: {}",
        "version: 1\nsections: {foo: []}",
        "version: 1\nsections: {global: [{schema: '', name: a, kind: role}]}",
        "version: 1\nsections: {global: [{schema: '', name: a, kind: nope,"
        " start: 0, end: 1}]}",
        "version: 1\nsections: {global: [{schema: '', name: a, kind: role,"
        " start: -1, end: 1}]}",
        "version: 1\nsections: {global: [{schema: '', name: a, kind: role,"
        " start: 10, end: 1}]}",
        "version: 1\nsections: {global: [{schema: '', name: a, kind: role,"
        " start: 0, end: 1, foo: bar}]}",
        "version: 1\nsections: [",
    ],
)
def test_load_invalid(data):
    with pytest.raises(TocError):
        TableOfContents.load(data)


def test_load_overlapping():
    data = """\
version: 1
sections:
  global:
  - {schema: '', name: a, kind: role, start: 0, end: 10}
  - {schema: '', name: b, kind: role, start: 5, end: 15}
"""
    with pytest.raises(TocError) as excinfo:
        TableOfContents.load(data)
    assert "overlaps" in str(excinfo.value)


def test_extract():
    text = "SET foo = 1;\n\n\nCREATE ROLE àlice;\n"
    data = text.encode()
    toc = TableOfContents()
    n1 = len("SET foo = 1;\n".encode())
    toc.add_entry("global", "", "", "session-gucs", 0, n1)
    toc.add_entry("global", "", "àlice", "role", n1, len(data))

    f = io.BytesIO(data)
    entry = toc.get("global", "", "àlice")
    assert TableOfContents.extract(entry, f) == "\n\nCREATE ROLE àlice;\n"


def test_extract_truncated():
    toc = TableOfContents()
    entry = toc.add_entry("global", "", "a", "role", 0, 100)
    with pytest.raises(TocError):
        TableOfContents.extract(entry, io.BytesIO(b"short"))


def test_concurrent_add():
    toc = TableOfContents()
    nentries = 1000

    def fill(section):
        for i in range(nentries):
            toc.add_entry(section, "s", "o%s" % i, "predata-type", i * 10, i * 10 + 5)

    threads = [threading.Thread(target=fill, args=(s,)) for s in ("global", "predata")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(toc) == 2 * nentries
    for section in ("global", "predata"):
        entries = toc.entries(section)
        assert [e.start for e in entries] == [i * 10 for i in range(nentries)]
