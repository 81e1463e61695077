#!/usr/bin/env python3
"""
Table of contents of a dump: where to find every object in the sections.

This file is part of pg_metadump.
"""

import os
import logging
import threading
from importlib import resources

import yaml
from jsonschema import Draft7Validator

from . import consts
from .exceptions import TocError

logger = logging.getLogger("metadump.toc")

TOC_VERSION = 1

validator = Draft7Validator(
    schema=yaml.safe_load(
        resources.files("metadump").joinpath("schema/toc.yaml").read_bytes()
    )
)


class TOCEntry:
    """
    The position of one object in a section stream.

    `start` and `end` are byte offsets from the beginning of the section;
    an empty range means the object was considered but produced no text.
    """

    __slots__ = ("section", "schema", "name", "kind", "start", "end")

    def __init__(self, section, schema, name, kind, start, end):
        self.section = section
        self.schema = schema
        self.name = name
        self.kind = kind
        self.start = start
        self.end = end

    def __repr__(self):
        return "<%s %s %s %s.%s [%s:%s]>" % (
            self.__class__.__name__,
            self.section,
            self.kind,
            self.schema,
            self.name,
            self.start,
            self.end,
        )

    def __eq__(self, other):
        if not isinstance(other, TOCEntry):
            return NotImplemented
        return self.as_tuple() == other.as_tuple()

    def __hash__(self):
        return hash(self.as_tuple())

    @property
    def size(self):
        return self.end - self.start

    def as_tuple(self):
        return (self.section, self.schema, self.name, self.kind, self.start, self.end)

    def as_dict(self):
        # the section is implied by the position in the document
        return {
            "schema": self.schema,
            "name": self.name,
            "kind": self.kind,
            "start": self.start,
            "end": self.end,
        }


class TableOfContents:
    """
    The index of all the objects emitted in a dump.

    Entries can be added concurrently by the workers writing different
    sections: the entries of each section are kept in the order they are
    added.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries = {section: [] for section in consts.SECTIONS}
        self._index = {}

    def add_entry(self, section, schema, name, kind, start, end):
        """
        Record that the object `schema`.`name` of `kind` was written in
        `section` between the bytes `start` and `end`.
        """
        if section not in self._entries:
            raise ValueError("unknown section: %s" % section)
        if kind not in consts.TOC_KINDS:
            raise ValueError("unknown toc entry kind: %s" % kind)
        if not 0 <= start <= end:
            raise ValueError(
                "bad range for %s %s in %s: %s-%s" % (kind, name, section, start, end)
            )

        entry = TOCEntry(section, schema, name, kind, start, end)
        with self._lock:
            entries = self._entries[section]
            if entries and entries[-1].end > start:
                raise ValueError(
                    "entry %s overlaps the previous one in %s" % (entry, section)
                )
            entries.append(entry)
            self._index.setdefault((section, schema, name), []).append(entry)

        return entry

    def lookup(self, section, schema, name):
        """
        Return the entries of the object `schema`.`name` in `section`.

        The entries are in the order they were written.
        """
        with self._lock:
            return list(self._index.get((section, schema, name), ()))

    def get(self, section, schema, name, kind=None):
        """
        Return the entry of an object, None if not found.

        If there is more than one entry for the object, the last one written
        is returned (e.g. the full definition of a type after its shell).
        """
        for entry in reversed(self.lookup(section, schema, name)):
            if kind is None or entry.kind == kind:
                return entry

    def entries(self, section=None):
        """
        Return the entries of a section, or of all of them, in order.
        """
        with self._lock:
            if section is not None:
                return list(self._entries[section])
            return [e for s in consts.SECTIONS for e in self._entries[s]]

    def __len__(self):
        with self._lock:
            return sum(len(es) for es in self._entries.values())

    def as_dict(self):
        with self._lock:
            return {
                "version": TOC_VERSION,
                "sections": {
                    section: [e.as_dict() for e in self._entries[section]]
                    for section in consts.SECTIONS
                },
            }

    def dump(self, stream=None):
        """
        Serialize the toc as yaml into `stream`; return a string if no stream.
        """
        return yaml.safe_dump(
            self.as_dict(),
            stream,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )

    def save(self, filename):
        """
        Write the toc into a file.

        The file is written under a temporary name and renamed at the end,
        so that an incomplete toc is never found at `filename`.
        """
        tmpname = filename + ".tmp"
        try:
            with open(tmpname, "w", encoding="utf-8") as f:
                self.dump(f)
            os.replace(tmpname, filename)
        except Exception:
            if os.path.exists(tmpname):
                os.unlink(tmpname)
            raise
        logger.info("table of contents written to %s", filename)

    @classmethod
    def load(cls, stream):
        """
        Read a toc from a stream or string previously written by `dump()`.
        """
        try:
            doc = yaml.safe_load(stream)
        except yaml.YAMLError as e:
            raise TocError("error parsing the table of contents: %s" % e)

        errors = sorted(
            validator.iter_errors(doc), key=lambda e: [str(p) for p in e.path]
        )
        if errors:
            error = errors[0]
            where = "/".join(map(str, error.path))
            raise TocError(
                "bad table of contents%s: %s"
                % (" at %s" % where if where else "", error.message)
            )

        if doc["version"] != TOC_VERSION:
            raise TocError("unsupported table of contents version: %s" % doc["version"])

        rv = cls()
        for section in consts.SECTIONS:
            for e in doc["sections"].get(section) or ():
                try:
                    rv.add_entry(
                        section, e["schema"], e["name"], e["kind"], e["start"], e["end"]
                    )
                except ValueError as ex:
                    raise TocError("bad table of contents: %s" % ex)

        return rv

    @classmethod
    def from_file(cls, filename):
        with open(filename, encoding="utf-8") as f:
            return cls.load(f)

    @staticmethod
    def extract(entry, infile):
        """
        Return the text of `entry` reading it from the section file `infile`.

        `infile` must be a seekable binary file.
        """
        infile.seek(entry.start)
        data = infile.read(entry.size)
        if len(data) != entry.size:
            raise TocError(
                "%s: expected %s bytes, found %s" % (entry, entry.size, len(data))
            )
        return data.decode("utf-8")
