#!/usr/bin/env python3
"""
YAML parser remembering where things were parsed from.

This file is part of pg_metadump.
"""

import yaml


class PosDict(dict):
    """
    A dict knowing the file name and line number of itself and of its items.
    """

    __slots__ = ("filename", "lineno", "itemlines")

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.filename = None
        self.lineno = None
        self.itemlines = {}


class PosList(list):
    """
    A list knowing the file name and line number of itself and of its items.
    """

    __slots__ = ("filename", "lineno", "itemlines")

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.filename = None
        self.lineno = None
        self.itemlines = []


def _line(node):
    return node.start_mark.line + 1


class PosLoader(yaml.SafeLoader):
    """
    Safe YAML loader returning `PosDict` and `PosList` for maps and sequences.

    The line of an item is the line of its value if it is a scalar, else of
    the key introducing it.
    """

    def construct_pos_map(self, node):
        data = PosDict()
        data.filename = node.start_mark.name
        data.lineno = _line(node)
        yield data

        self.flatten_mapping(node)
        for key_node, value_node in node.value:
            key = self.construct_object(key_node, deep=True)
            try:
                hash(key)
            except TypeError:
                raise yaml.constructor.ConstructorError(
                    "while constructing a mapping",
                    node.start_mark,
                    "found unhashable key",
                    key_node.start_mark,
                )
            data[key] = self.construct_object(value_node, deep=True)
            if isinstance(value_node, yaml.ScalarNode):
                data.itemlines[key] = _line(value_node)
            else:
                data.itemlines[key] = _line(key_node)

    def construct_pos_seq(self, node):
        data = PosList()
        data.filename = node.start_mark.name
        data.lineno = _line(node)
        yield data

        for child in node.value:
            data.append(self.construct_object(child, deep=True))
            data.itemlines.append(_line(child))


PosLoader.add_constructor("tag:yaml.org,2002:map", PosLoader.construct_pos_map)
PosLoader.add_constructor("tag:yaml.org,2002:seq", PosLoader.construct_pos_seq)


def load_yaml(stream):
    """Load yaml from a file or a string."""
    return yaml.load(stream, Loader=PosLoader)
