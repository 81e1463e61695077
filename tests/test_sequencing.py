import random

import pytest

from metadump.dbobjects import CatalogObject, ShellType
from metadump.resolving import DependencyGraph, DependencyResolver
from metadump.sequencing import TopologicalSequencer
from metadump.exceptions import UnbreakableCycle


def obj(kind, oid, name, schema="public", **kwargs):
    return CatalogObject.from_kind(kind, oid, schema, name, **kwargs)


def sequence(objs):
    graph = DependencyResolver(objs).resolve()
    return TopologicalSequencer(graph).sequence()


def names(seq):
    return [("shell " if isinstance(o, ShellType) else "") + o.name for o in seq]


def test_void():
    assert sequence([]) == []


def test_dependencies_first():
    objs = [
        obj("function", 1, "f", depends_upon=["public.c"]),
        obj("composite type", 2, "c", depends_upon=["public.e"]),
        obj("enum type", 3, "e"),
    ]
    assert names(sequence(objs)) == ["e", "c", "f"]


def test_ties_by_name():
    objs = [obj("enum type", i, n) for i, n in enumerate("dbca", 1)]
    assert names(sequence(objs)) == ["a", "b", "c", "d"]


def test_ties_by_schema_first():
    objs = [
        obj("enum type", 1, "a", schema="zz"),
        obj("enum type", 2, "z", schema="aa"),
    ]
    assert [str(o) for o in sequence(objs)] == ["aa.z", "zz.a"]


def test_priority_over_name():
    objs = [
        obj("role", 1, "aaa", schema=""),
        obj("database", 2, "zzz", schema=""),
        obj("tablespace", 3, "bbb", schema=""),
    ]
    assert names(sequence(objs)) == ["zzz", "aaa", "bbb"]


def test_deterministic():
    """The result doesn't depend on the order the objects are read."""
    objs = [
        obj("enum type", 1, "e1"),
        obj("enum type", 2, "e2"),
        obj("composite type", 3, "c1", depends_upon=["public.e2"]),
        obj("composite type", 4, "c2", depends_upon=["public.e1", "public.c1"]),
        obj("function", 5, "f", depends_upon=["public.c2"]),
        obj("function", 6, "g"),
        obj("domain type", 7, "d", depends_upon=["public.e1"]),
    ]
    expected = names(sequence(objs))

    rnd = random.Random(42)
    for i in range(20):
        rnd.shuffle(objs)
        assert names(sequence(objs)) == expected


def test_components():
    a = obj("composite type", 1, "a", depends_upon=["public.b"])
    b = obj("composite type", 2, "b", depends_upon=["public.a"])
    c = obj("enum type", 3, "c")
    graph = DependencyResolver([a, b, c]).resolve()
    comps = TopologicalSequencer(graph).components()
    assert sorted(map(len, comps)) == [1, 2]
    assert [a, b] in comps


def test_long_chain():
    n = 5000
    objs = [obj("function", 0, "f0")] + [
        obj("function", i, "f%s" % i, depends_upon=["public.f%s()" % (i - 1)])
        for i in range(1, n)
    ]
    seq = sequence(objs)
    assert [o.oid for o in seq] == list(range(n))


def test_two_types_loop():
    """A loop between two types is broken declaring one as shell."""
    objs = [
        obj("composite type", 1, "a", depends_upon=["public.b"]),
        obj("composite type", 2, "b", depends_upon=["public.a"]),
    ]
    seq = sequence(objs)
    assert names(seq) == ["shell b", "a", "b"]

    shell = seq[0]
    assert shell.promoted
    assert shell.oid == 2


def test_base_type_functions():
    """A base type and its I/O functions: the type is declared first."""
    objs = [
        obj(
            "base type",
            1,
            "complex",
            input="complex_in",
            output="complex_out",
            depends_upon=["public.complex_in(cstring)", "public.complex_out(complex)"],
        ),
        obj(
            "function",
            2,
            "complex_in",
            arguments="cstring",
            depends_upon=["public.complex"],
        ),
        obj(
            "function",
            3,
            "complex_out",
            arguments="complex",
            depends_upon=["public.complex"],
        ),
    ]
    seq = sequence(objs)
    assert names(seq) == ["shell complex", "complex_in", "complex_out", "complex"]


def test_loop_via_function():
    """
    Types A and B depend on each other, passing through a function.

    Only one of the types needs a shell.
    """
    objs = [
        obj("composite type", 1, "a", depends_upon=["public.funcx(b)"]),
        obj("function", 2, "funcx", arguments="b", depends_upon=["public.b"]),
        obj("composite type", 3, "b", depends_upon=["public.a"]),
    ]
    seq = sequence(objs)
    assert names(seq) == ["shell b", "funcx", "a", "b"]


def test_loop_function_missing():
    """If the function is not in the dump there is no loop at all."""
    objs = [
        obj("composite type", 1, "a", depends_upon=["public.funcx(b)"]),
        obj("composite type", 3, "b", depends_upon=["public.a"]),
    ]
    seq = sequence(objs)
    assert names(seq) == ["a", "b"]


def test_shell_before_full_definition():
    objs = [
        obj("composite type", 1, "a", depends_upon=["public.b"]),
        obj("composite type", 2, "b", depends_upon=["public.a"]),
        obj("enum type", 3, "e"),
        obj("function", 4, "f", depends_upon=["public.a", "public.b"]),
    ]
    seq = sequence(objs)
    pos = {(o.oid, isinstance(o, ShellType)): i for i, o in enumerate(seq)}
    assert len(seq) == 5
    assert pos[2, True] < pos[1, False] < pos[2, False] < pos[4, False]


def test_functions_loop_unbreakable():
    objs = [
        obj("function", 1, "f", depends_upon=["public.g()"]),
        obj("function", 2, "g", depends_upon=["public.f()"]),
        obj("enum type", 3, "e"),
    ]
    with pytest.raises(UnbreakableCycle) as excinfo:
        sequence(objs)

    assert sorted(o.oid for o in excinfo.value.members) == [1, 2]


def test_self_loop_in_graph_unbreakable():
    f = obj("function", 1, "f")
    graph = DependencyGraph([f])
    graph.add_edge(f, f)
    with pytest.raises(UnbreakableCycle):
        TopologicalSequencer(graph).sequence()


def test_self_loop_type():
    t = obj("composite type", 1, "t")
    graph = DependencyGraph([t])
    graph.add_edge(t, t)
    seq = TopologicalSequencer(graph).sequence()
    assert names(seq) == ["shell t", "t"]


def test_every_object_once():
    objs = [
        obj("composite type", 1, "a", depends_upon=["public.b"]),
        obj("composite type", 2, "b", depends_upon=["public.c"]),
        obj("composite type", 3, "c", depends_upon=["public.a"]),
        obj("function", 4, "f", depends_upon=["public.c"]),
    ]
    seq = sequence(objs)
    full = [o.oid for o in seq if not isinstance(o, ShellType)]
    assert sorted(full) == [1, 2, 3, 4]

    # every dependency of a full definition comes before it, as shell or not
    pos = {}
    for i, o in enumerate(seq):
        pos.setdefault(o.oid, i)
    for o in objs:
        for dep in o.depends_upon:
            depobj = next(x for x in objs if x.qualname == dep)
            assert pos[depobj.oid] < seq.index(o)
