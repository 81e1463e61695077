import io

import pytest

from metadump import consts
from metadump.dbreader import DbReader, check_server_version, greenplum_major
from metadump.dbobjects import (
    CompositeType,
    Database,
    DomainType,
    EnumType,
    Function,
    SessionGUCs,
)
from metadump.exceptions import DumpError

from .fix_db import SCRATCH_SCHEMA


@pytest.mark.parametrize(
    "version, major",
    [
        ("PostgreSQL 16.2 on x86_64-pc-linux-gnu, compiled by gcc", None),
        (
            "PostgreSQL 9.4.26 (Greenplum Database 6.25.3 build commit:abc) "
            "on x86_64-unknown-linux-gnu",
            6,
        ),
        ("PostgreSQL 12.12 (Greenplum Database 7.1.0 build dev) on x86_64", 7),
        (None, None),
    ],
)
def test_greenplum_major(version, major):
    assert greenplum_major(version) == major


def test_check_server_version():
    check_server_version(90400)
    check_server_version(160002)
    with pytest.raises(DumpError, match="at least 9.4"):
        check_server_version(80323)


def load(dsn):
    reader = DbReader(dsn)
    reader.load_schema()
    return reader.catalog


def test_server_info(dsn):
    reader = DbReader(dsn)
    assert reader.server_version >= 90400
    assert reader.has_column("pg_authid", "rolname")
    assert not reader.has_column("pg_authid", "rolnonsense")


def test_database(dsn, conn):
    catalog = load(dsn)
    assert catalog.version

    dbname = conn.execute("select current_database()").fetchone()[0]
    (db,) = [obj for obj in catalog if isinstance(obj, Database)]
    assert db.name.strip('"') == dbname

    gucs = catalog.session_gucs
    assert isinstance(gucs, SessionGUCs)
    assert gucs.standard_conforming_strings in ("on", "off")


def test_types(dsn, scratch):
    scratch.execute(
        """
create type mood as enum ('sad', 'ok');
create type pair as (m mood, n integer);
create domain posint as integer check (value > 0);
create table t (id integer);
"""
    )
    catalog = load(dsn)

    (mood,) = catalog.find(SCRATCH_SCHEMA, "mood")
    assert isinstance(mood, EnumType)
    assert mood.labels == ("'sad'", "'ok'")
    assert mood.generated is None

    (arr,) = catalog.find(SCRATCH_SCHEMA, "_mood")
    assert arr.generated == consts.GENERATED_ARRAY
    assert arr.array_of == "%s.mood" % SCRATCH_SCHEMA

    (pair,) = catalog.find(SCRATCH_SCHEMA, "pair")
    assert isinstance(pair, CompositeType)
    assert pair.attributes == ("m %s.mood" % SCRATCH_SCHEMA, "n integer")
    assert pair.depends_upon == ("%s.mood" % SCRATCH_SCHEMA,)

    (posint,) = catalog.find(SCRATCH_SCHEMA, "posint")
    assert isinstance(posint, DomainType)
    assert posint.base_type == "integer"
    assert posint.depends_upon == ()
    assert posint.constraints[0].startswith("CONSTRAINT posint_check CHECK")

    (t,) = catalog.find(SCRATCH_SCHEMA, "t")
    assert t.generated == consts.GENERATED_TABLE
    (arr,) = catalog.find(SCRATCH_SCHEMA, "_t")
    assert arr.generated == consts.GENERATED_TABLE


def test_functions(dsn, scratch):
    scratch.execute(
        """
create type pair as (a integer, b integer);
create function add(p pair) returns integer
language sql as 'select $1.a + $1.b';
create function add(a integer, b integer) returns integer
language sql as 'select a + b';
comment on function add(integer, integer) is 'sum';
"""
    )
    catalog = load(dsn)

    funcs = sorted(catalog.find(SCRATCH_SCHEMA, "add", cls=Function), key=str)
    assert len(funcs) == 2
    assert funcs[0].arguments == "a integer, b integer"
    assert funcs[0].comment == "sum"
    assert funcs[0].depends_upon == ()
    assert "select a + b" in funcs[0].definition

    assert funcs[1].arguments == "p %s.pair" % SCRATCH_SCHEMA
    assert funcs[1].depends_upon == ("%s.pair" % SCRATCH_SCHEMA,)


def test_dump(dbdumper, scratch):
    scratch.execute(
        """
create type mood as enum ('sad', 'ok');
create function sad() returns mood language sql as $$select 'sad'::mood$$;
"""
    )
    outfiles = {"global": io.BytesIO(), "predata": io.BytesIO()}
    dbdumper.add_config({"sections": {"global": "g.sql", "predata": "p.sql"}})
    dbdumper.perform_dump(outfiles=outfiles)

    toc = dbdumper.toc
    enum = toc.get("predata", SCRATCH_SCHEMA, "mood")
    func = toc.get("predata", SCRATCH_SCHEMA, "sad()")
    assert enum.end <= func.start

    text = toc.extract(enum, outfiles["predata"])
    assert text.startswith(
        "\n\nCREATE TYPE %s.mood AS ENUM (\n\t'sad',\n\t'ok'\n);" % SCRATCH_SCHEMA
    )
