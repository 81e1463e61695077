#!/usr/bin/env python3

"""
Program exceptions.

This file is part of pg_metadump.
"""


class MetaDumpException(Exception):
    """A controlled exception raised by the script."""


class DumpError(MetaDumpException):
    """Error dumping the database."""


class ConfigError(MetaDumpException):
    """Error parsing configuration."""


class TocError(MetaDumpException):
    """Error reading a table of contents."""


class AmbiguousDependency(DumpError):
    """A dependency name matches more than one object of the dump."""

    def __init__(self, name, oids):
        self.name = name
        self.oids = sorted(oids)
        super().__init__(
            "dependency %s is ambiguous: it matches objects with oids %s"
            % (name, ", ".join(map(str, self.oids)))
        )


class UnbreakableCycle(DumpError):
    """Objects depend on each other and no shell can break the loop."""

    def __init__(self, members):
        self.members = list(members)
        super().__init__(
            "dependency cycle can't be broken between: %s"
            % ", ".join("%s %s" % (obj.kind, obj) for obj in self.members)
        )


class WriteFault(DumpError):
    """Error writing a section of the dump."""

    def __init__(self, message, section=None, filename=None):
        self.section = section
        self.filename = filename
        super().__init__(message)
