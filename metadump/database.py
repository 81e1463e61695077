#!/usr/bin/env python3
"""
Representation of the catalog of the database to dump.

This file is part of pg_metadump.
"""

from .dbobjects import SessionGUCs

# Oids are 32 bits unsigned in PostgreSQL: objects without an oid in the
# catalog (grants, settings) get one above that range.
FIRST_SYNTHETIC_OID = 2 ** 32


class Catalog:
    """
    The set of objects to dump in one run.
    """

    def __init__(self):
        self._objects = []
        self._by_oid = {}
        self._next_oid = FIRST_SYNTHETIC_OID

        # The server version string, only used to render statements
        self.version = None

    def synthetic_oid(self):
        """
        Return a new oid for an object which doesn't have one in the catalog.
        """
        rv = self._next_oid
        self._next_oid += 1
        return rv

    def add_object(self, obj):
        if obj.oid is None:
            raise ValueError("the object %s has no oid" % obj)
        if obj.oid in self._by_oid:
            raise ValueError(
                "the catalog already contains an object with oid %s: %s"
                % (obj.oid, self._by_oid[obj.oid])
            )
        self._by_oid[obj.oid] = obj
        self._objects.append(obj)
        return obj

    def find(self, schema, name, cls=None):
        """
        Return the objects called `schema`.`name`, optionally of a class.
        """
        return [
            obj
            for obj in self._objects
            if obj.schema == schema
            and obj.name == name
            and (cls is None or isinstance(obj, cls))
        ]

    @property
    def session_gucs(self):
        """The session settings object, if the catalog has one."""
        for obj in self._objects:
            if isinstance(obj, SessionGUCs):
                return obj

    def __iter__(self):
        yield from self._objects

    def __len__(self):
        return len(self._objects)
