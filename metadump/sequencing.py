#!/usr/bin/env python3
"""
Ordering of the objects to dump according to their dependencies.

This file is part of pg_metadump.
"""

import heapq
import logging

from .dbobjects import ShellType
from .exceptions import UnbreakableCycle

logger = logging.getLogger("metadump.sequencing")


class TopologicalSequencer:
    """
    Sort the nodes of a `DependencyGraph` in a valid creation order.

    Objects ready to be created are emitted by priority class first, then
    by schema, name, oid, so the result only depends on the objects and not
    on the order they were read.

    Loops between types are broken by forward-declaring some of them as
    shell types: the shell is emitted before the objects in the loop which
    need it, the full definition after its own dependencies.
    """

    def __init__(self, graph):
        self.graph = graph

    def sequence(self):
        """
        Return the list of objects to emit, shells included.
        """
        # Work on items (oid, is_shell), as promoted types appear twice
        self._objs = {}
        self._deps = {}
        for obj in self.graph:
            item = (obj.oid, False)
            self._objs[item] = obj
            deps = self.graph.dependencies(obj)
            self._deps[item] = {(dep.oid, False) for dep in deps}

        for component in self.components():
            if len(component) == 1:
                obj = component[0]
                if (obj.oid, False) not in self._deps[obj.oid, False]:
                    continue
            self._break_cycle(component)

        return self._sort()

    def components(self):
        """
        Return the strongly connected components of the graph.

        Components are returned in dependency order, members sorted.
        This is Tarjan's algorithm, iterative to avoid hitting the recursion
        limit on long dependency chains.
        """
        index = {}
        lowlink = {}
        stack = []
        on_stack = set()
        rv = []

        def successors(obj):
            return sorted(self.graph.dependencies(obj), key=_key)

        for root in sorted(self.graph, key=_key):
            if root.oid in index:
                continue

            index[root.oid] = lowlink[root.oid] = len(index)
            stack.append(root)
            on_stack.add(root.oid)
            work = [(root, iter(successors(root)))]

            while work:
                obj, children = work[-1]
                for child in children:
                    if child.oid not in index:
                        index[child.oid] = lowlink[child.oid] = len(index)
                        stack.append(child)
                        on_stack.add(child.oid)
                        work.append((child, iter(successors(child))))
                        break
                    elif child.oid in on_stack:
                        lowlink[obj.oid] = min(lowlink[obj.oid], index[child.oid])
                else:
                    work.pop()
                    if work:
                        parent = work[-1][0]
                        lowlink[parent.oid] = min(lowlink[parent.oid], lowlink[obj.oid])

                    if lowlink[obj.oid] == index[obj.oid]:
                        component = []
                        while True:
                            member = stack.pop()
                            on_stack.discard(member.oid)
                            component.append(member)
                            if member is obj:
                                break
                        rv.append(sorted(component, key=_key))

        return rv

    def _break_cycle(self, component):
        """
        Choose the members of a loop to forward-declare and rewire the edges.
        """
        types = [obj for obj in component if obj.is_type]
        if not types:
            raise UnbreakableCycle(component)

        oids = {obj.oid for obj in component}
        for anchor in types:
            shelled = {obj.oid for obj in types if obj is not anchor}
            if self._is_acyclic(oids, shelled):
                logger.debug(
                    "breaking loop between %s using %s %s as anchor",
                    ", ".join(map(str, component)),
                    anchor.kind,
                    anchor,
                )
                break
        else:
            shelled = {obj.oid for obj in types}
            if not self._is_acyclic(oids, shelled):
                raise UnbreakableCycle(component)
            logger.debug(
                "breaking loop between %s forward-declaring all the types",
                ", ".join(map(str, component)),
            )

        for oid in sorted(shelled):
            full = (oid, False)
            shell = (oid, True)
            obj = self._objs[full]
            logger.debug("%s %s will be declared as shell first", obj.kind, obj)
            self._objs[shell] = ShellType.promote(obj)
            self._deps[shell] = set()
            # The full definition completes the shell
            self._deps[full].add(shell)

        for oid in oids:
            deps = self._deps[oid, False]
            for dep in list(deps):
                if not dep[1] and dep[0] in shelled and dep[0] in oids:
                    deps.discard(dep)
                    deps.add((dep[0], True))

    def _is_acyclic(self, oids, shelled):
        """
        Return True if the members `oids` of a loop are sortable once the
        `shelled` ones are forward-declared.
        """
        deps = {}
        for oid in oids:
            deps[oid] = {
                dep
                for dep, is_shell in self._deps[oid, False]
                if not is_shell and dep in oids and dep not in shelled
            }

        ready = [oid for oid, d in deps.items() if not d]
        done = set()
        while ready:
            oid = ready.pop()
            done.add(oid)
            for other, d in deps.items():
                if oid in d:
                    d.discard(oid)
                    if not d and other not in done:
                        ready.append(other)

        return len(done) == len(oids)

    def _sort(self):
        npreds = {}
        succs = {item: [] for item in self._deps}
        for item, deps in self._deps.items():
            npreds[item] = len(deps)
            for dep in deps:
                succs[dep].append(item)

        ready = []
        for item, count in npreds.items():
            if not count:
                heapq.heappush(ready, (self._item_key(item), item))

        rv = []
        while ready:
            _, item = heapq.heappop(ready)
            rv.append(self._objs[item])
            for succ in succs[item]:
                npreds[succ] -= 1
                if not npreds[succ]:
                    heapq.heappush(ready, (self._item_key(succ), succ))

        if len(rv) != len(self._deps):
            left = [self._objs[item] for item, count in npreds.items() if count]
            raise UnbreakableCycle(sorted(left, key=_key))

        return rv

    def _item_key(self, item):
        # Shells sort before the full definition
        return _key(self._objs[item]) + (not item[1],)


def _key(obj):
    return obj.sort_key
