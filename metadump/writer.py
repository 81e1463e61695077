#!/usr/bin/env python3
"""
Output streams keeping track of the position of what is written.

This file is part of pg_metadump.
"""

import logging

from .exceptions import WriteFault

logger = logging.getLogger("metadump.writer")


class ByteCountingWriter:
    """
    Write text to a binary stream, counting the bytes written.

    `offset` is the number of bytes written since the beginning of the
    stream: the text of two consecutive writes occupies adjacent ranges.
    Any I/O error raises `WriteFault` and makes the writer unusable.
    """

    encoding = "utf-8"

    def __init__(self, outfile, section=None, filename=None, owned=False):
        self.outfile = outfile
        self.section = section
        self.filename = filename
        self._owned = owned
        self._offset = 0
        self._failed = None

    @classmethod
    def open(cls, filename, section=None):
        """
        Create a writer on a new file. The file is closed by `close()`.
        """
        try:
            outfile = open(filename, "wb")
        except OSError as e:
            raise WriteFault(
                "couldn't open %s for writing: %s" % (filename, e),
                section=section,
                filename=filename,
            ) from e

        return cls(outfile, section=section, filename=filename, owned=True)

    @property
    def offset(self):
        """The number of bytes written so far."""
        return self._offset

    def write(self, text):
        """
        Write `text` to the stream, return the number of bytes written.
        """
        if self._failed is not None:
            raise self._fault("the stream failed before: %s" % self._failed)

        data = text.encode(self.encoding)
        if not data:
            return 0

        try:
            nbytes = self.outfile.write(data)
        except (OSError, ValueError) as e:
            self._failed = e
            raise self._fault("error writing: %s" % e) from e

        # Raw streams may write less than requested
        if nbytes is not None and nbytes != len(data):
            self._failed = "short write"
            raise self._fault(
                "short write: %s bytes of %s written" % (nbytes, len(data))
            )

        self._offset += len(data)
        return len(data)

    def flush(self):
        try:
            self.outfile.flush()
        except (OSError, ValueError) as e:
            self._failed = e
            raise self._fault("error flushing: %s" % e) from e

    def close(self):
        if not self._owned:
            return
        try:
            self.outfile.close()
        except OSError as e:
            raise self._fault("error closing: %s" % e) from e

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def _fault(self, message):
        where = self.filename or self.section
        if where:
            message = "%s: %s" % (where, message)
        return WriteFault(message, section=self.section, filename=self.filename)
