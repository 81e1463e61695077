#!/usr/bin/env python3

"""
Readers base class

This file is part of pg_metadump.
"""

from abc import ABC, abstractmethod

from .database import Catalog


class Reader(ABC):
    """
    The base class of an object to read the catalog to dump.
    """

    def __init__(self):
        self.catalog = Catalog()

    @abstractmethod
    def load_schema(self):
        """Add the objects to dump to `self.catalog`."""
