#!/usr/bin/env python3

"""
Reading the objects to dump from a PostgreSQL or Greenplum catalog.

This file is part of pg_metadump.
"""

import re
import logging
from collections import defaultdict
from functools import lru_cache

import psycopg
from psycopg.rows import namedtuple_row

from . import consts
from .reader import Reader
from .dbobjects import CatalogObject, TimeConstraint, global_name
from .exceptions import DumpError
from .rendering import quote_literal

logger = logging.getLogger("metadump.dbreader")

# Greenplum 6 is based on PostgreSQL 9.4
MIN_SERVER_VERSION = 90400

# Settings whose value is a list: they can't be quoted as a single literal
LIST_GUCS = {
    "datestyle",
    "local_preload_libraries",
    "search_path",
    "session_preload_libraries",
    "shared_preload_libraries",
    "temp_tablespaces",
}


def greenplum_major(version):
    """
    Return the Greenplum major version from a `version()` string.

    Return None if the string doesn't come from a Greenplum server.
    """
    m = re.search(r"\(Greenplum Database (\d+)\.", version or "")
    return int(m.group(1)) if m else None


def check_server_version(number):
    """Raise DumpError if the server is too old to read its catalog."""
    if number < MIN_SERVER_VERSION:
        raise DumpError(
            "server version %s not supported: at least %s.%s is required"
            % (
                number,
                MIN_SERVER_VERSION // 10000,
                MIN_SERVER_VERSION // 100 % 100,
            )
        )


def schema_filter(alias):
    """Return the condition excluding the system schemas from a query."""
    return "%s.nspname !~ '^pg_' and %s.nspname not in (%s)" % (
        alias,
        alias,
        ", ".join(quote_literal(s) for s in consts.SYSTEM_SCHEMAS),
    )


def not_in_extension(alias, catalog):
    """Return the condition excluding the objects created by extensions."""
    return """not exists (
    select 1 from pg_depend e
    where e.classid = '%s'::regclass and e.objid = %s.oid and e.deptype = 'e')""" % (
        catalog,
        alias,
    )


class DbReader(Reader):
    def __init__(self, dsn):
        super().__init__()
        self.dsn = dsn

    @property
    @lru_cache(maxsize=1)
    def connection(self):
        logger.debug("connecting to '%s'", self.dsn)
        try:
            cnn = psycopg.connect(self.dsn, row_factory=namedtuple_row)
        except Exception as e:
            raise DumpError("error connecting to the database: %s" % e)

        cnn.autocommit = True
        return cnn

    def cursor(self):
        return self.connection.cursor()

    def fetch(self, query, params=None):
        with self.cursor() as cur:
            try:
                cur.execute(query, params)
            except psycopg.Error as e:
                raise DumpError("error reading the catalog: %s" % e)
            return cur.fetchall()

    @property
    def server_version(self):
        """The PostgreSQL version number of the server, e.g. 90426."""
        return self.connection.info.server_version

    @property
    def gp_version(self):
        """The Greenplum major version, None if the server is not Greenplum."""
        return greenplum_major(self.catalog.version)

    @property
    def is_greenplum(self):
        return self.gp_version is not None

    def has_column(self, table, column):
        """Return True if the system catalog `table` has `column`."""
        (rec,) = self.fetch(
            """
select exists (
    select 1 from pg_attribute
    where attrelid = %s::regclass and attname = %s and not attisdropped)
    as found
""",
            (table, column),
        )
        return rec.found

    def load_schema(self):
        (rec,) = self.fetch("select version() as version")
        self.catalog.version = rec.version
        logger.info("reading catalog from %s", rec.version)
        check_server_version(self.server_version)

        self._load_session_gucs()
        self._load_database()
        if self.is_greenplum:
            self._load_resource_queues()
            if self.gp_version >= 7:
                logger.warning(
                    "resource groups of Greenplum %s are not supported: skipping",
                    self.gp_version,
                )
            else:
                self._load_resource_groups()
        self._load_roles()
        self._load_role_grants()
        self._load_tablespaces()
        self._load_functions()
        self._load_types()

    def add(self, kind, oid, schema, name, **kwargs):
        obj = CatalogObject.from_kind(kind, oid, schema, name, **kwargs)
        return self.catalog.add_object(obj)

    def _load_session_gucs(self):
        logger.debug("fetching session settings")
        (rec,) = self.fetch(
            """
select
    current_setting('client_encoding') as client_encoding,
    current_setting('standard_conforming_strings') as standard_conforming_strings
"""
        )
        self.add(
            consts.KIND_SESSION_GUCS,
            self.catalog.synthetic_oid(),
            "",
            "",
            client_encoding=rec.client_encoding,
            standard_conforming_strings=rec.standard_conforming_strings,
        )

    def _load_database(self):
        logger.debug("fetching database")
        (rec,) = self.fetch(
            """
select
    d.oid,
    quote_ident(d.datname) as name,
    quote_ident(t.spcname) as tablespace,
    quote_ident(pg_get_userbyid(d.datdba)) as owner,
    d.datacl::text[] as acl,
    shobj_description(d.oid, 'pg_database') as comment
from pg_database d
join pg_tablespace t on t.oid = d.dattablespace
where d.datname = current_database()
"""
        )
        self.add(
            consts.KIND_DATABASE,
            rec.oid,
            "",
            rec.name,
            tablespace=rec.tablespace,
            owner=rec.owner,
            acl=rec.acl,
            comment=rec.comment,
        )

        logger.debug("fetching database settings")
        for guc in self.fetch(
            """
select unnest(s.setconfig) as config
from pg_db_role_setting s
join pg_database d on d.oid = s.setdatabase
where d.datname = current_database()
and s.setrole = 0
"""
        ):
            name, value = guc.config.split("=", 1)
            if name.lower() not in LIST_GUCS:
                value = quote_literal(value)
            self.add(
                consts.KIND_DATABASE_GUC,
                self.catalog.synthetic_oid(),
                "",
                rec.name,
                setting="SET %s TO %s" % (name, value),
            )

    def _load_resource_queues(self):
        logger.debug("fetching resource queues")
        for rec in self.fetch(
            """
select
    q.oid,
    quote_ident(q.rsqname) as name,
    q.rsqcountlimit::int as active_statements,
    q.rsqcostlimit::text as max_cost,
    q.rsqovercommit as cost_overcommit,
    q.rsqignorecostlimit::text as min_cost,
    coalesce((
        select a.ressetting::text from pg_resqueue_attributes a
        where a.rsqname = q.rsqname and a.resname = 'priority'), 'medium')
        as priority_level,
    coalesce((
        select a.ressetting::text from pg_resqueue_attributes a
        where a.rsqname = q.rsqname and a.resname = 'memory_limit'), '-1')
        as memory_limit,
    shobj_description(q.oid, 'pg_resqueue') as comment
from pg_resqueue q
order by q.rsqname
"""
        ):
            fields = rec._asdict()
            oid, name = fields.pop("oid"), fields.pop("name")
            self.add(consts.KIND_RESOURCE_QUEUE, oid, "", name, **fields)

    def _load_resource_groups(self):
        logger.debug("fetching resource groups")
        # reslimittype: 1 concurrency, 2 cpu, 3 memory, 4 shared quota, 5 spill
        for rec in self.fetch(
            """
select
    g.oid,
    quote_ident(g.rsgname) as name,
    max(case when c.reslimittype = 1 then c.value::int end) as concurrency,
    max(case when c.reslimittype = 2 then c.value::int end) as cpu_rate_limit,
    max(case when c.reslimittype = 3 then c.value::int end) as memory_limit,
    max(case when c.reslimittype = 4 then c.value::int end) as memory_shared_quota,
    max(case when c.reslimittype = 5 then c.value::int end) as memory_spill_ratio,
    shobj_description(g.oid, 'pg_resgroup') as comment
from pg_resgroup g
join pg_resgroupcapability c on c.resgroupid = g.oid
group by g.oid, g.rsgname
order by g.rsgname
"""
        ):
            fields = rec._asdict()
            oid, name = fields.pop("oid"), fields.pop("name")
            self.add(consts.KIND_RESOURCE_GROUP, oid, "", name, **fields)

    def _load_roles(self):
        logger.debug("fetching roles")
        gpcols = gpjoins = ""
        if self.is_greenplum:
            gpcols = """,
    quote_ident(q.rsqname) as resource_queue,
    quote_ident(g.rsgname) as resource_group,
    a.rolcreaterexthttp as create_ext_http,
    a.rolcreaterextgpfd as create_ext_gpfdist_read,
    a.rolcreatewextgpfd as create_ext_gpfdist_write"""
            # gphdfs was dropped in Greenplum 6
            if self.has_column("pg_authid", "rolcreaterexthdfs"):
                gpcols += """,
    a.rolcreaterexthdfs as create_ext_hdfs_read,
    a.rolcreatewexthdfs as create_ext_hdfs_write"""
            gpjoins = """
left join pg_resqueue q on q.oid = a.rolresqueue
left join pg_resgroup g on g.oid = a.rolresgroup"""

        constraints = defaultdict(list)
        if self.is_greenplum:
            for rec in self.fetch(
                """
select authid, start_day, start_time::text, end_day, end_time::text
from pg_auth_time_constraint
order by authid, start_day, start_time
"""
            ):
                constraints[rec.authid].append(
                    TimeConstraint(
                        rec.start_day, rec.start_time, rec.end_day, rec.end_time
                    )
                )

        for rec in self.fetch(
            """
select
    a.oid,
    quote_ident(a.rolname) as name,
    a.rolsuper as superuser,
    a.rolinherit as inherit,
    a.rolcreaterole as create_role,
    a.rolcreatedb as create_db,
    a.rolcanlogin as can_login,
    a.rolconnlimit as connection_limit,
    a.rolpassword as password,
    a.rolvaliduntil::text as valid_until,
    shobj_description(a.oid, 'pg_authid') as comment%s
from pg_authid a%s
where a.rolname !~ '^pg_'
order by a.rolname
"""
            % (gpcols, gpjoins)
        ):
            fields = rec._asdict()
            oid, name = fields.pop("oid"), fields.pop("name")
            deps = [
                global_name(kind, fields[attr])
                for attr, kind in (
                    ("resource_queue", consts.KIND_RESOURCE_QUEUE),
                    ("resource_group", consts.KIND_RESOURCE_GROUP),
                )
                if fields.get(attr)
            ]
            self.add(
                consts.KIND_ROLE,
                oid,
                "",
                name,
                depends_upon=deps,
                time_constraints=constraints.get(oid, ()),
                **fields
            )

    def _load_role_grants(self):
        logger.debug("fetching role grants")
        for rec in self.fetch(
            """
select
    quote_ident(pg_get_userbyid(m.roleid)) as role,
    quote_ident(pg_get_userbyid(m.member)) as member,
    quote_ident(pg_get_userbyid(m.grantor)) as grantor,
    m.admin_option as is_admin
from pg_auth_members m
join pg_authid r on r.oid = m.roleid
where r.rolname !~ '^pg_'
order by 1, 2
"""
        ):
            self.add(
                consts.KIND_ROLE_GRANT,
                self.catalog.synthetic_oid(),
                "",
                rec.member,
                depends_upon=[
                    global_name(consts.KIND_ROLE, rec.role),
                    global_name(consts.KIND_ROLE, rec.member),
                ],
                **rec._asdict()
            )

    def _load_tablespaces(self):
        logger.debug("fetching tablespaces")
        for rec in self.fetch(
            """
select
    t.oid,
    quote_ident(t.spcname) as name,
    pg_tablespace_location(t.oid) as location,
    t.spcoptions as options,
    quote_ident(pg_get_userbyid(t.spcowner)) as owner,
    t.spcacl::text[] as acl,
    shobj_description(t.oid, 'pg_tablespace') as comment
from pg_tablespace t
where t.spcname !~ '^pg_'
order by t.spcname
"""
        ):
            fields = rec._asdict()
            oid, name = fields.pop("oid"), fields.pop("name")
            self.add(consts.KIND_TABLESPACE, oid, "", name, **fields)

    def _load_functions(self):
        logger.debug("fetching functions")
        deps = self._fetch_dependencies(
            """
select distinct
    d.objid as oid,
    quote_ident(n.nspname) || '.' || quote_ident(t.typname) as referenced
from pg_depend d
join pg_type t on t.oid = d.refobjid
join pg_namespace n on n.oid = t.typnamespace
where d.classid = 'pg_proc'::regclass
and d.refclassid = 'pg_type'::regclass
and d.deptype = 'n'
and %s
"""
            % schema_filter("n")
        )

        # aggregates have no definition to dump
        if self.server_version >= 110000:
            kinds = "p.prokind in ('f', 'p')"
        else:
            kinds = "not p.proisagg"

        for rec in self.fetch(
            """
select
    p.oid,
    quote_ident(n.nspname) as schema,
    quote_ident(p.proname) as name,
    pg_get_function_identity_arguments(p.oid) as arguments,
    pg_get_functiondef(p.oid) as definition,
    quote_ident(pg_get_userbyid(p.proowner)) as owner,
    p.proacl::text[] as acl,
    obj_description(p.oid, 'pg_proc') as comment
from pg_proc p
join pg_namespace n on n.oid = p.pronamespace
where %s
and %s
and %s
order by n.nspname, p.proname, p.oid
"""
            % (schema_filter("n"), kinds, not_in_extension("p", "pg_proc"))
        ):
            fields = rec._asdict()
            oid = fields.pop("oid")
            schema, name = fields.pop("schema"), fields.pop("name")
            self.add(
                consts.KIND_FUNCTION,
                oid,
                schema,
                name,
                depends_upon=deps.get(oid, ()),
                **fields
            )

    def _load_types(self):
        logger.debug("fetching types")
        deps = self._fetch_type_dependencies()

        for rec in self.fetch(
            """
select
    t.oid,
    quote_ident(n.nspname) as schema,
    quote_ident(t.typname) as name,
    t.typtype,
    case
        when c.relkind is not null and c.relkind <> 'c' then 'table'
        when et.oid is not null and ec.relkind is not null and ec.relkind <> 'c'
            then 'table'
        when et.oid is not null then 'array'
    end as generated,
    case when et.oid is not null
        then quote_ident(en.nspname) || '.' || quote_ident(et.typname)
    end as array_of,
    t.typinput::text as input,
    t.typoutput::text as output,
    nullif(t.typreceive::text, '-') as receive,
    nullif(t.typsend::text, '-') as send,
    nullif(t.typmodin::text, '-') as modin,
    nullif(t.typmodout::text, '-') as modout,
    t.typlen::int as internal_length,
    t.typbyval as passed_by_value,
    t.typalign::text as alignment,
    t.typstorage::text as storage,
    t.typdefault as "default",
    case when t.typelem <> 0 and et.oid is null
        then pg_catalog.format_type(t.typelem, null)
    end as element,
    t.typdelim::text as delimiter,
    t.typcategory::text as category,
    t.typispreferred as preferred,
    array(
        select quote_ident(a.attname) || ' '
            || pg_catalog.format_type(a.atttypid, a.atttypmod)
        from pg_attribute a
        where a.attrelid = t.typrelid and a.attnum > 0 and not a.attisdropped
        order by a.attnum) as attributes,
    pg_catalog.format_type(t.typbasetype, t.typtypmod) as base_type,
    t.typnotnull as not_null,
    array(
        select 'CONSTRAINT ' || quote_ident(k.conname) || ' '
            || pg_get_constraintdef(k.oid)
        from pg_constraint k
        where k.contypid = t.oid
        order by k.conname) as constraints,
    array(
        select quote_literal(e.enumlabel)
        from pg_enum e
        where e.enumtypid = t.oid
        order by e.enumsortorder) as labels,
    quote_ident(pg_get_userbyid(t.typowner)) as owner,
    t.typacl::text[] as acl,
    obj_description(t.oid, 'pg_type') as comment
from pg_type t
join pg_namespace n on n.oid = t.typnamespace
left join pg_class c on c.oid = t.typrelid
left join pg_type et on et.oid = t.typelem and et.typarray = t.oid
left join pg_namespace en on en.oid = et.typnamespace
left join pg_class ec on ec.oid = et.typrelid
where %s
and t.typtype in ('b', 'c', 'd', 'e', 'p')
and %s
order by n.nspname, t.typname
"""
            % (schema_filter("n"), not_in_extension("t", "pg_type"))
        ):
            kind = consts.PG_TYPTYPES[rec.typtype]
            fields = {
                attr: getattr(rec, attr)
                for attr in CatalogObject._kinds[kind]._fields
                if attr in rec._fields
            }
            self.add(
                kind,
                rec.oid,
                rec.schema,
                rec.name,
                depends_upon=deps.get(rec.oid, ()),
                owner=rec.owner,
                acl=rec.acl,
                comment=rec.comment,
                **fields
            )

    def _fetch_type_dependencies(self):
        """
        Return the names of the objects the types depend on, by type oid.

        Base types depend on their functions, domains on their base type,
        composite types on the types of their attributes. Objects in
        pg_catalog are built-in and not considered.
        """
        rv = self._fetch_dependencies(
            """
select distinct
    t.oid,
    quote_ident(n.nspname) || '.' || quote_ident(p.proname)
        || '(' || pg_get_function_identity_arguments(p.oid) || ')' as referenced
from pg_depend d
join pg_proc p on d.refobjid = p.oid
join pg_type t on d.objid = t.oid and t.typtype = 'b'
join pg_namespace n on n.oid = p.pronamespace
where d.classid = 'pg_type'::regclass
and d.refclassid = 'pg_proc'::regclass
and d.deptype = 'n'
and %s
"""
            % schema_filter("n")
        )

        domains = self._fetch_dependencies(
            """
select
    t.oid,
    quote_ident(n.nspname) || '.' || quote_ident(bt.typname) as referenced
from pg_type t
join pg_type bt on t.typbasetype = bt.oid
join pg_namespace n on bt.typnamespace = n.oid
where t.typtype = 'd'
and %s
"""
            % schema_filter("n")
        )

        composites = self._fetch_dependencies(
            """
select distinct
    tc.oid,
    quote_ident(n.nspname) || '.' || quote_ident(t.typname) as referenced
from pg_depend d
join pg_type t on d.refobjid = t.oid
join pg_class c on d.objid = c.oid and c.relkind = 'c'
join pg_type tc on tc.typrelid = c.oid and tc.typtype = 'c'
join pg_namespace n on n.oid = t.typnamespace
where d.classid = 'pg_class'::regclass
and d.refclassid = 'pg_type'::regclass
and c.reltype <> t.oid
and d.deptype = 'n'
and %s
"""
            % schema_filter("n")
        )

        for more in (domains, composites):
            for oid, names in more.items():
                rv.setdefault(oid, []).extend(names)
        return rv

    def _fetch_dependencies(self, query):
        rv = defaultdict(list)
        for rec in self.fetch(query):
            rv[rec.oid].append(rec.referenced)
        for names in rv.values():
            names.sort()
        return rv
