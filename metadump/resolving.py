#!/usr/bin/env python3
"""
Resolution of the names the objects depend upon into a dependency graph.

This file is part of pg_metadump.
"""

import logging
from collections import defaultdict

from . import consts
from .exceptions import AmbiguousDependency

logger = logging.getLogger("metadump.resolving")


class DependencyGraph:
    """
    A directed graph between catalog objects.

    An edge from A to B means that A depends on B, i.e. B must be created
    before A. Nodes are identified by oid; nodes and edges are returned in
    the order they were added.
    """

    def __init__(self, nodes=()):
        self._nodes = {}
        self._deps = {}
        self._rdeps = {}
        for node in nodes:
            self.add_node(node)

    def add_node(self, obj):
        if obj.oid in self._nodes:
            raise ValueError("the graph already contains the oid %s" % obj.oid)
        self._nodes[obj.oid] = obj
        self._deps[obj.oid] = {}
        self._rdeps[obj.oid] = {}

    def add_edge(self, obj, dep):
        """
        Record that `obj` depends on `dep`. Both must be in the graph.
        """
        if obj.oid not in self._nodes or dep.oid not in self._nodes:
            raise ValueError("can't add an edge %s -> %s: not in graph" % (obj, dep))
        self._deps[obj.oid][dep.oid] = dep
        self._rdeps[dep.oid][obj.oid] = obj

    def dependencies(self, obj):
        """Return the objects `obj` depends on."""
        return list(self._deps[obj.oid].values())

    def dependents(self, obj):
        """Return the objects depending on `obj`."""
        return list(self._rdeps[obj.oid].values())

    def restrict(self, objs):
        """
        Return the subgraph containing only `objs` and the edges among them.
        """
        rv = DependencyGraph()
        objs = list(objs)
        for obj in objs:
            rv.add_node(self._nodes[obj.oid])
        for obj in objs:
            for dep in self._deps[obj.oid].values():
                if dep.oid in rv._nodes:
                    rv.add_edge(obj, dep)
        return rv

    @property
    def nodes(self):
        return list(self._nodes.values())

    def __iter__(self):
        yield from self._nodes.values()

    def __len__(self):
        return len(self._nodes)

    def __contains__(self, obj):
        return self._nodes.get(obj.oid) is obj


class DependencyResolver:
    """
    Build the dependency graph of a set of catalog objects.

    Every object lists in `depends_upon` the qualified names of the objects
    its definition requires. A name matching no object refers to something
    external or built-in, and is ignored; a name matching more than one
    object is an error.
    """

    def __init__(self, objects):
        self.objects = list(objects)

    def resolve(self):
        """
        Return the `DependencyGraph` of the objects.
        """
        candidates = []
        redirects = {}
        for obj in self.objects:
            generated = getattr(obj, "generated", None)
            if generated is None:
                candidates.append(obj)
                continue

            logger.debug("ignoring %s %s generated by %s", obj.kind, obj, generated)
            # A reference to an array is a reference to its element type
            if generated == consts.GENERATED_ARRAY and obj.array_of:
                redirects[obj.qualname] = obj.array_of

        by_name = defaultdict(list)
        for obj in candidates:
            if obj.qualname is not None:
                by_name[obj.qualname].append(obj)

        graph = DependencyGraph(candidates)
        for obj in candidates:
            for name in obj.depends_upon:
                dep = self._lookup(by_name, redirects.get(name, name))
                if dep is None:
                    logger.debug(
                        "%s %s depends on %s: not in the dump, assuming built-in",
                        obj.kind,
                        obj,
                        name,
                    )
                    continue

                if dep is obj:
                    logger.debug("%s %s depends on itself: ignoring", obj.kind, obj)
                    continue

                graph.add_edge(obj, dep)

        return graph

    def _lookup(self, by_name, name):
        objs = by_name.get(name)
        if not objs:
            return None
        if len(objs) > 1:
            raise AmbiguousDependency(name, [obj.oid for obj in objs])
        return objs[0]
