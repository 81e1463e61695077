#!/usr/bin/env python3

"""
Object to perform a metadata dump.

This file is part of pg_metadump.
"""

import os
import math
import logging
from datetime import datetime
from concurrent.futures import ThreadPoolExecutor

from . import consts
from .config import load_yaml, get_config_errors
from .database import Catalog
from .dummywriter import DummyWriter
from .exceptions import ConfigError
from .rendering import SqlRenderer
from .resolving import DependencyResolver
from .sequencing import TopologicalSequencer
from .toc import TableOfContents
from .writer import ByteCountingWriter

logger = logging.getLogger("metadump.dumper")


class Dumper:
    """
    The logic of a metadata dump.

    The dump happens in two steps: `plan_dump()` reads the catalog and
    decides the order of the objects in each section, `run_dump()` writes
    them. Errors in the objects dependencies surface in the first step,
    before any output is created.
    """

    def __init__(self, reader, renderer=None):
        self.catalog = Catalog()
        self.reader = reader
        self.renderer = renderer
        self.toc = TableOfContents()
        self.sections = {}
        self.toc_filename = None
        self.jobs = 1
        self.options = {}
        self.sequences = {}

    @property
    def reader(self):
        return self._reader

    @reader.setter
    def reader(self, reader):
        self._reader = reader
        reader.catalog = self.catalog

    def add_config(self, cfg):
        """
        Add a config structure to the dumper.

        The structure is what parsed by a yaml file. It must have a mapping of
        'sections' to their destination files.

        You can pass a string too, which will be parsed as yaml.
        """
        if isinstance(cfg, str):
            # This case is mostly used for testing, so not really caring about
            # returning all the errors.
            cfg = load_yaml(cfg)
            errors = get_config_errors(cfg)
            if errors:
                raise ConfigError(errors[0])

        self.sections.update(cfg["sections"])
        if cfg.get("toc") is not None:
            self.toc_filename = cfg["toc"]
        if cfg.get("jobs") is not None:
            self.jobs = cfg["jobs"]
        self.options.update(cfg.get("options") or {})

    def perform_dump(self, outfiles=None):
        """
        Perform the dump of the catalog.

        Read the catalog from the reader, sort the objects, use the renderer
        to write every section and save the table of contents.
        """
        self.reader.load_schema()
        self.plan_dump()
        self.run_dump(outfiles=outfiles)
        self.save_toc()

    def plan_dump(self, sections=None):
        """
        Calculate the order of the objects to dump in every section.

        This step doesn't need an output.
        """
        if sections is None:
            sections = self.sections or consts.SECTIONS

        graph = DependencyResolver(self.catalog).resolve()
        logger.debug("dependency graph built with %s objects", len(graph))

        self.sequences.clear()
        for section in consts.SECTIONS:
            if section not in sections:
                continue
            objs = [obj for obj in graph if obj.section == section]
            seq = TopologicalSequencer(graph.restrict(objs)).sequence()
            logger.debug("%s objects to dump in section %s", len(seq), section)
            self.sequences[section] = seq

    def run_dump(self, outfiles=None, test=False):
        """
        Write the sections previously planned.

        `outfiles` maps section names to binary files to write; if not
        specified the files from the configuration are created. If `test` is
        True nothing is written.

        If any section fails the files created are removed.
        """
        if self.renderer is None:
            self.renderer = SqlRenderer(version=self.catalog.version, **self.options)

        sections = [s for s in consts.SECTIONS if s in self.sequences]
        if outfiles is not None:
            sections = [s for s in sections if s in outfiles]

        self.toc = TableOfContents()
        writers = {}
        try:
            for section in sections:
                if test:
                    writers[section] = DummyWriter(section=section)
                elif outfiles is not None:
                    writers[section] = ByteCountingWriter(
                        outfiles[section], section=section
                    )
                else:
                    writers[section] = ByteCountingWriter.open(
                        self.sections[section], section=section
                    )

            if self.jobs > 1 and len(sections) > 1:
                self._emit_parallel(writers)
            else:
                for section in sections:
                    self._emit_section(section, writers[section])

            for writer in writers.values():
                writer.close()

        except BaseException:
            self._discard(writers)
            raise

    def _emit_section(self, section, writer):
        emitter = MetadataEmitter(section, writer, self.toc, self.renderer)
        emitter.emit(self.sequences[section], session_gucs=self.catalog.session_gucs)

    def _emit_parallel(self, writers):
        with ThreadPoolExecutor(max_workers=self.jobs) as executor:
            futures = [
                executor.submit(self._emit_section, section, writer)
                for section, writer in writers.items()
            ]
            # wait for all, then raise the first error
            errors = [f.exception() for f in futures]

        for error in errors:
            if error is not None:
                raise error

    def _discard(self, writers):
        for writer in writers.values():
            try:
                writer.close()
            except Exception as e:
                logger.debug("error closing %s: %s", writer.section, e)

            if writer.filename and os.path.exists(writer.filename):
                logger.warning("removing incomplete file %s", writer.filename)
                os.unlink(writer.filename)

    def save_toc(self, filename=None):
        """
        Save the table of contents of the sections written.
        """
        if filename is None:
            filename = self.toc_filename
        if filename is None:
            logger.debug("no table of contents file configured")
            return
        self.toc.save(filename)


class MetadataEmitter:
    """
    Write the objects of one section, recording their position in the toc.
    """

    def __init__(self, section, writer, toc, renderer):
        self.section = section
        self.writer = writer
        self.toc = toc
        self.renderer = renderer

    def emit(self, sequence, session_gucs=None):
        """
        Write all the objects of `sequence` in order.

        The session settings, if passed, are written first.
        """
        start_time = datetime.now()
        logger.info("dumping section %s", self.section)

        if session_gucs is not None:
            self.emit_object(session_gucs)
        for obj in sequence:
            self.emit_object(obj)

        self.writer.flush()

        elapsed = pretty_timedelta(datetime.now() - start_time)
        logger.info(
            "section %s dumped: %s objects, %s (%s)",
            self.section,
            len(sequence),
            pretty_size(self.writer.offset),
            elapsed or "0s",
        )

    def emit_object(self, obj):
        """
        Write the statements of an object and add its entry to the toc.

        The annotation is part of the same entry. An object without
        statements gets an empty entry.
        """
        text, annotation = self.renderer.render(obj)
        start = self.writer.offset
        self.writer.write(text)
        if annotation:
            self.writer.write(annotation)
        end = self.writer.offset

        logger.debug(
            "%s %s written in %s [%s:%s]", obj.kind, obj, self.section, start, end
        )
        return self.toc.add_entry(
            self.section, obj.schema, obj.toc_name, obj.toc_kind, start, end
        )


def pretty_size(size):
    """
    Display a size in bytes in a human friendly way
    """
    if size <= 0:
        # Not bothering with negative numbers
        return "%sB" % size

    suffixes = ("B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB", "ZiB", "YiB")
    i = int(math.floor(math.log(size, 1024)))
    p = math.pow(1024, i)
    s = round(size / p, 2)
    return "%s %s" % (s, suffixes[i])


def pretty_timedelta(delta):
    """
    Display a time interval in a human friendly way
    """
    rem, secs = divmod(abs(delta.total_seconds()), 60)
    rem, mins = divmod(rem, 60)
    days, hours = divmod(rem, 24)
    parts = [(days, "d"), (hours, "h"), (mins, "m"), (secs, "s")]
    while parts and parts[0][0] == 0:
        del parts[0]
    sign = "-" if delta.total_seconds() < 0 else ""
    return sign + " ".join("%.0f%s" % p for p in parts)
