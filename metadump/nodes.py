#!/usr/bin/env python3
"""
Base classes to implement the visitor pattern on catalog objects.

https://en.wikipedia.org/wiki/Visitor_pattern

This file is part of pg_metadump.
"""


class Node:
    """
    An object which can be dispatched by a NodeVisitor.

    The visitor method is looked up along the class mro, so a subclass
    without a specific method falls back on its parent's one.
    """


class NodeVisitor:
    def visit(self, node, *args, **kwargs):
        for cls in node.__class__.__mro__:
            meth = getattr(self, "visit_" + cls.__name__, None)
            if meth is not None:
                return meth(node, *args, **kwargs)

        # visit_object is defined below, so we should never get here
        assert False, "no visitor method found in %r" % self

    def visit_object(self, node, *args, **kwargs):
        raise NotImplementedError(
            "visitor %s cannot handle node %s"
            % (self.__class__.__name__, node.__class__.__name__)
        )
