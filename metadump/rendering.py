#!/usr/bin/env python3
"""
Conversion of catalog objects into SQL statements.

Every statement starts with the separator it needs from the previous one,
so that the text of an object can be extracted from a section and executed
on its own.

This file is part of pg_metadump.
"""

import re
import logging

from .nodes import NodeVisitor
from .dbobjects import ResourceGroup
from .exceptions import DumpError

logger = logging.getLogger("metadump.rendering")

# aclitem privilege letters: https://www.postgresql.org/docs/current/ddl-priv.html
PRIVILEGES = {
    "r": "SELECT",
    "w": "UPDATE",
    "a": "INSERT",
    "d": "DELETE",
    "D": "TRUNCATE",
    "x": "REFERENCES",
    "t": "TRIGGER",
    "X": "EXECUTE",
    "U": "USAGE",
    "C": "CREATE",
    "c": "CONNECT",
    "T": "TEMPORARY",
}

# The privileges which can be granted on each kind of object
OBJECT_PRIVILEGES = {
    "DATABASE": "CTc",
    "DOMAIN": "U",
    "FUNCTION": "X",
    "TABLESPACE": "C",
    "TYPE": "U",
}

ALIGNMENTS = {"c": "char", "s": "int2", "i": "int4", "d": "double"}
STORAGES = {"p": "plain", "e": "external", "x": "extended", "m": "main"}


class SqlRenderer(NodeVisitor):
    """
    Return the statements to create an object.

    `render()` returns a pair (text, annotation): the statement creating the
    object and the statements setting its ownership, comment, privileges.
    Either can be empty.
    """

    def __init__(
        self, create_database=True, privileges=True, comments=True, version=None
    ):
        self.create_database = create_database
        self.privileges = privileges
        self.comments = comments
        self.version = version

    def render(self, obj):
        rv = self.visit(obj)
        if isinstance(rv, tuple):
            return rv
        return rv, self.annotation(obj)

    def visit_SessionGUCs(self, gucs):
        rv = """\
SET statement_timeout = 0;
SET check_function_bodies = false;
SET client_min_messages = error;
SET client_encoding = %s;
SET standard_conforming_strings = %s;
""" % (
            quote_literal(gucs.client_encoding),
            gucs.standard_conforming_strings,
        )
        # Strict xml parsing gets in the way restoring into Greenplum 4
        if self.version and "Greenplum Database 4." in self.version:
            rv += "SET gp_strict_xml_parse = off;\n"
        return rv, ""

    def visit_Database(self, db):
        if not self.create_database:
            logger.debug("not creating database %s", db)
            return "", ""

        rv = "\n\nCREATE DATABASE %s" % db.name
        if db.tablespace and db.tablespace != "pg_default":
            rv += " TABLESPACE %s" % db.tablespace
        return rv + ";"

    def visit_DatabaseGUC(self, guc):
        return "\nALTER DATABASE %s %s;" % (guc.name, guc.setting), ""

    def visit_ResourceQueue(self, queue):
        attrs = []
        if queue.active_statements != -1:
            attrs.append("ACTIVE_STATEMENTS=%d" % queue.active_statements)
        if _to_float(queue, "max_cost") > -1:
            attrs.append("MAX_COST=%s" % queue.max_cost)
        if queue.cost_overcommit:
            attrs.append("COST_OVERCOMMIT=TRUE")
        if _to_float(queue, "min_cost") > 0:
            attrs.append("MIN_COST=%s" % queue.min_cost)
        if queue.priority_level != "medium":
            attrs.append("PRIORITY=%s" % queue.priority_level.upper())
        if queue.memory_limit != "-1":
            attrs.append("MEMORY_LIMIT=%s" % quote_literal(queue.memory_limit))

        # The default queue exists in every cluster
        action = "ALTER" if queue.name == "pg_default" else "CREATE"
        return "\n\n%s RESOURCE QUEUE %s WITH (%s);" % (
            action,
            queue.name,
            ", ".join(attrs),
        )

    def visit_ResourceGroup(self, group):
        settings = [
            ("CPU_RATE_LIMIT", group.cpu_rate_limit),
            ("MEMORY_LIMIT", group.memory_limit),
            ("MEMORY_SHARED_QUOTA", group.memory_shared_quota),
            ("MEMORY_SPILL_RATIO", group.memory_spill_ratio),
            ("CONCURRENCY", group.concurrency),
        ]
        # a limit missing from the catalog keeps the server default
        settings = [(attr, value) for attr, value in settings if value is not None]
        if group.name in ResourceGroup.BUILTIN:
            return "".join(
                "\n\nALTER RESOURCE GROUP %s SET %s %d;" % (group.name, attr, value)
                for attr, value in settings
            )

        return "\n\nCREATE RESOURCE GROUP %s WITH (%s);" % (
            group.name,
            ", ".join("%s=%d" % s for s in settings),
        )

    def visit_Role(self, role):
        attrs = [
            "SUPERUSER" if role.superuser else "NOSUPERUSER",
            "INHERIT" if role.inherit else "NOINHERIT",
            "CREATEROLE" if role.create_role else "NOCREATEROLE",
            "CREATEDB" if role.create_db else "NOCREATEDB",
            "LOGIN" if role.can_login else "NOLOGIN",
        ]
        if role.connection_limit != -1:
            attrs.append("CONNECTION LIMIT %d" % role.connection_limit)
        if role.password:
            attrs.append("PASSWORD %s" % quote_literal(role.password))
        if role.valid_until:
            attrs.append("VALID UNTIL %s" % quote_literal(role.valid_until))
        if role.resource_queue:
            attrs.append("RESOURCE QUEUE %s" % role.resource_queue)
        if role.resource_group:
            attrs.append("RESOURCE GROUP %s" % role.resource_group)
        if role.create_ext_http:
            attrs.append("CREATEEXTTABLE (protocol='http')")
        if role.create_ext_gpfdist_read:
            attrs.append("CREATEEXTTABLE (protocol='gpfdist', type='readable')")
        if role.create_ext_gpfdist_write:
            attrs.append("CREATEEXTTABLE (protocol='gpfdist', type='writable')")
        if role.create_ext_hdfs_read:
            attrs.append("CREATEEXTTABLE (protocol='gphdfs', type='readable')")
        if role.create_ext_hdfs_write:
            attrs.append("CREATEEXTTABLE (protocol='gphdfs', type='writable')")

        rv = "\n\nCREATE ROLE %s;\nALTER ROLE %s WITH %s;" % (
            role.name,
            role.name,
            " ".join(attrs),
        )
        deny = "\nALTER ROLE %s DENY BETWEEN DAY %d TIME '%s' AND DAY %d TIME '%s';"
        for tc in role.time_constraints:
            rv += deny % (
                role.name,
                tc.start_day,
                tc.start_time,
                tc.end_day,
                tc.end_time,
            )
        return rv

    def visit_RoleGrant(self, grant):
        rv = "\nGRANT %s TO %s" % (grant.role, grant.member)
        if grant.is_admin:
            rv += " WITH ADMIN OPTION"
        if grant.grantor:
            rv += " GRANTED BY %s" % grant.grantor
        return rv + ";", ""

    def visit_Tablespace(self, ts):
        if ts.filespace:
            rv = "\n\nCREATE TABLESPACE %s FILESPACE %s;" % (ts.name, ts.filespace)
        else:
            rv = "\n\nCREATE TABLESPACE %s LOCATION %s;" % (
                ts.name,
                quote_literal(ts.location or ""),
            )
        if ts.options:
            rv += "\nALTER TABLESPACE %s SET (%s);" % (ts.name, ", ".join(ts.options))
        return rv

    def visit_Function(self, func):
        if not func.definition:
            raise DumpError("no definition found for function %s" % func)
        return "\n\n%s;" % func.definition.rstrip().rstrip(";")

    def visit_ShellType(self, shell):
        rv = "\n\nCREATE TYPE %s;" % shell
        # A forward declaration: the full definition carries the metadata
        if shell.promoted:
            return rv, ""
        return rv

    def visit_BaseType(self, base):
        opts = ["INPUT = %s" % base.input, "OUTPUT = %s" % base.output]
        if base.receive:
            opts.append("RECEIVE = %s" % base.receive)
        if base.send:
            opts.append("SEND = %s" % base.send)
        if base.modin:
            opts.append("TYPMOD_IN = %s" % base.modin)
        if base.modout:
            opts.append("TYPMOD_OUT = %s" % base.modout)
        if base.internal_length is not None and base.internal_length > 0:
            opts.append("INTERNALLENGTH = %d" % base.internal_length)
        if base.passed_by_value:
            opts.append("PASSEDBYVALUE")
        if base.alignment:
            align = ALIGNMENTS.get(base.alignment, base.alignment)
            opts.append("ALIGNMENT = %s" % align)
        if base.storage and base.storage != "p":
            opts.append("STORAGE = %s" % STORAGES.get(base.storage, base.storage))
        if base.default is not None:
            opts.append("DEFAULT = %s" % quote_literal(base.default))
        if base.element:
            opts.append("ELEMENT = %s" % base.element)
        if base.delimiter and base.delimiter != ",":
            opts.append("DELIMITER = %s" % quote_literal(base.delimiter))
        if base.category and base.category != "U":
            opts.append("CATEGORY = %s" % quote_literal(base.category))
        if base.preferred:
            opts.append("PREFERRED = true")

        return "\n\nCREATE TYPE %s (\n\t%s\n);" % (base, ",\n\t".join(opts))

    def visit_CompositeType(self, comp):
        attrs = ",\n\t".join(comp.attributes)
        return "\n\nCREATE TYPE %s AS (\n\t%s\n);" % (comp, attrs)

    def visit_EnumType(self, enum):
        labels = ",\n\t".join(enum.labels)
        return "\n\nCREATE TYPE %s AS ENUM (\n\t%s\n);" % (enum, labels)

    def visit_DomainType(self, domain):
        rv = "\n\nCREATE DOMAIN %s AS %s" % (domain, domain.base_type)
        if domain.default is not None:
            rv += " DEFAULT %s" % domain.default
        if domain.not_null:
            rv += " NOT NULL"
        for constraint in domain.constraints:
            rv += "\n\t%s" % constraint
        return rv + ";"

    def annotation(self, obj):
        """
        Return the statements setting the comment, owner, privileges of `obj`.
        """
        parts = []
        if self.comments and obj.comment:
            parts.append(
                "\n\n\nCOMMENT ON %s %s IS %s;"
                % (obj.sql_kind, obj, quote_literal(obj.comment))
            )

        if obj.owner and obj.sql_kind in OBJECT_PRIVILEGES:
            parts.append(
                "\n\n\nALTER %s %s OWNER TO %s;" % (obj.sql_kind, obj, obj.owner)
            )

        if self.privileges and obj.acl is not None:
            privs = self.privileges_statements(obj)
            if privs:
                parts.append("\n\n\n" + "\n".join(privs))

        return "".join(parts)

    def privileges_statements(self, obj):
        """
        Return the GRANT/REVOKE statements to restore the acl of `obj`.
        """
        allowed = OBJECT_PRIVILEGES.get(obj.sql_kind)
        if not allowed:
            return []

        target = "%s %s" % (obj.sql_kind, obj)
        rv = ["REVOKE ALL ON %s FROM PUBLIC;" % target]
        if obj.owner:
            rv.append("REVOKE ALL ON %s FROM %s;" % (target, obj.owner))

        for item in obj.acl:
            grantee, privs, grant_option = parse_aclitem(item)
            privs = [p for p in privs if p in allowed]
            if not privs:
                continue

            if sorted(privs) == sorted(allowed):
                what = "ALL"
            else:
                what = ",".join(PRIVILEGES[p] for p in privs)
            stmt = "GRANT %s ON %s TO %s" % (what, target, grantee or "PUBLIC")
            if grant_option:
                stmt += " WITH GRANT OPTION"
            rv.append(stmt + ";")

        return rv


_re_aclitem = re.compile(r'^((?:"(?:[^"]|"")*"|[^=]*))=([a-zA-Z*]*)/(.*)$')


def parse_aclitem(item):
    """
    Parse an aclitem string such as 'bob=UC*/alice'.

    Return the grantee (empty for PUBLIC), the list of privilege letters and
    True if any privilege is granted with grant option.
    """
    m = _re_aclitem.match(item)
    if m is None:
        raise DumpError("bad aclitem: %r" % item)

    grantee, letters, _ = m.groups()
    privs = [ch for ch in letters if ch != "*"]
    for p in privs:
        if p not in PRIVILEGES:
            raise DumpError("unknown privilege %r in aclitem %r" % (p, item))
    return grantee, privs, "*" in letters


def quote_literal(s):
    """
    Return `s` as a SQL literal, assuming standard_conforming_strings.
    """
    return "'%s'" % s.replace("'", "''")


def _to_float(obj, attr):
    value = getattr(obj, attr)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise DumpError("bad %s for %s %s: %r" % (attr, obj.kind, obj, value))
