#!/usr/bin/env python3
"""
Pretend to write a dump

This file is part of pg_metadump.
"""

import logging

from .writer import ByteCountingWriter

logger = logging.getLogger("metadump.dummywriter")


class DummyWriter(ByteCountingWriter):
    """
    A writer counting the bytes of the text but not writing it anywhere.
    """

    def __init__(self, section=None):
        super().__init__(None, section=section)

    def write(self, text):
        nbytes = len(text.encode(self.encoding))
        logger.debug("would write %s bytes to %s", nbytes, self.section)
        self._offset += nbytes
        return nbytes

    def flush(self):
        pass

    def close(self):
        pass
