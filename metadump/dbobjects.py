"""
Representation of catalog objects to handle by the program.

This file is part of pg_metadump.
"""

from . import consts
from .nodes import Node


def global_name(kind, name):
    """
    Return the name to reference a cluster-wide object, e.g. 'role:app'.

    Databases, roles, queues... have no schema and share no namespace, so
    their bare name is not enough to tell them apart.
    """
    return "%s:%s" % (kind, name)


class CatalogObject(Node):
    """
    An object in a database catalog.

    Objects are read-only: every attribute can be set only once, when the
    object is created. The kind-specific attributes and their defaults are
    declared by each subclass in `_fields`.
    """

    __slots__ = (
        "oid",
        "schema",
        "name",
        "depends_upon",
        "owner",
        "comment",
        "acl",
    )

    _kinds = {}
    _fields = {}

    kind = None

    # The stream where the object is written and its entry tag in the toc
    section = consts.SECTION_PREDATA
    toc_kind = None
    priority = consts.PRIORITY_PREDATA

    # The keyword identifying the object in COMMENT ON, GRANT... statements
    sql_kind = None

    # Types can be forward-declared to break dependency loops
    is_type = False

    # Can the object be mentioned in other objects' depends_upon?
    referenceable = True

    def __init__(
        self,
        oid,
        schema,
        name,
        depends_upon=(),
        owner=None,
        comment=None,
        acl=None,
        **kwargs
    ):
        self.oid = oid
        self.schema = schema or ""
        self.name = name
        self.depends_upon = tuple(depends_upon or ())
        self.owner = owner
        self.comment = comment
        self.acl = tuple(acl) if acl is not None else None

        unknown = set(kwargs) - set(self._fields)
        if unknown:
            raise TypeError(
                "unexpected attributes for %s: %s"
                % (self.kind, ", ".join(sorted(unknown)))
            )

        for attr, default in self._fields.items():
            value = kwargs.get(attr, default)
            if isinstance(value, list):
                value = tuple(value)
            setattr(self, attr, value)

    def __setattr__(self, attr, value):
        if hasattr(self, attr):
            raise AttributeError(
                "can't change %s of %s: catalog objects are read-only"
                % (attr, self)
            )
        super().__setattr__(attr, value)

    @classmethod
    def from_kind(cls, kind, oid, schema, name, **kwargs):
        # Values from the database or from yaml
        if kind in consts.PG_TYPTYPES:
            kind = consts.PG_TYPTYPES[kind]
        if kind not in cls._kinds:
            raise ValueError("unknown catalog object kind: %s" % kind)
        return cls._kinds[kind](oid, schema, name, **kwargs)

    def __repr__(self):
        return "<%s %s at 0x%x>" % (self.__class__.__name__, self, id(self))

    def __str__(self):
        if self.schema:
            return "%s.%s" % (self.schema, self.name)
        else:
            return self.name

    @property
    def qualname(self):
        """
        The name by which other objects refer to this object.

        None if the object cannot be referenced.
        """
        if not self.referenceable:
            return None
        if self.section == consts.SECTION_GLOBAL:
            return global_name(self.kind, self.name)
        return str(self)

    @property
    def toc_name(self):
        """The name of the object in the table of contents."""
        return self.name

    @property
    def sort_key(self):
        """The key used to break ties between objects ready to be emitted."""
        return (self.priority, self.schema, self.name, self.oid)

    @staticmethod
    def register(kind):
        """
        Decorator to allow a class to be instantiated by `from_kind()`.
        """

        def register_(cls):
            if kind in CatalogObject._kinds:
                raise ValueError("the kind %s is already associated to a class" % kind)
            CatalogObject._kinds[kind] = cls
            cls.kind = kind
            return cls

        return register_


@CatalogObject.register(consts.KIND_SESSION_GUCS)
class SessionGUCs(CatalogObject):
    """The settings to use restoring every section."""

    _fields = {
        "client_encoding": "UTF8",
        "standard_conforming_strings": "on",
    }
    __slots__ = tuple(_fields)

    section = None  # written at the beginning of every section
    toc_kind = consts.TOC_SESSION_GUCS
    priority = consts.PRIORITY_SESSION_GUCS
    referenceable = False


@CatalogObject.register(consts.KIND_DATABASE)
class Database(CatalogObject):
    """The database being dumped."""

    _fields = {"tablespace": "pg_default"}
    __slots__ = tuple(_fields)

    section = consts.SECTION_GLOBAL
    toc_kind = consts.TOC_DATABASE
    priority = consts.PRIORITY_DATABASE
    sql_kind = "DATABASE"


@CatalogObject.register(consts.KIND_DATABASE_GUC)
class DatabaseGUC(CatalogObject):
    """A setting attached to the database, e.g. 'SET search_path TO x'."""

    _fields = {"setting": ""}
    __slots__ = tuple(_fields)

    section = consts.SECTION_GLOBAL
    toc_kind = consts.TOC_DATABASE_GUC
    priority = consts.PRIORITY_DATABASE_GUC
    referenceable = False


@CatalogObject.register(consts.KIND_RESOURCE_QUEUE)
class ResourceQueue(CatalogObject):
    """A Greenplum resource queue."""

    _fields = {
        "active_statements": -1,
        "max_cost": "-1",
        "cost_overcommit": False,
        "min_cost": "0",
        "priority_level": "medium",
        "memory_limit": "-1",
    }
    __slots__ = tuple(_fields)

    section = consts.SECTION_GLOBAL
    toc_kind = consts.TOC_RESOURCE_QUEUE
    priority = consts.PRIORITY_RESOURCE_QUEUE
    sql_kind = "RESOURCE QUEUE"


@CatalogObject.register(consts.KIND_RESOURCE_GROUP)
class ResourceGroup(CatalogObject):
    """A Greenplum resource group."""

    _fields = {
        "cpu_rate_limit": 0,
        "memory_limit": 0,
        "memory_shared_quota": 0,
        "memory_spill_ratio": 0,
        "concurrency": 0,
    }
    __slots__ = tuple(_fields)

    section = consts.SECTION_GLOBAL
    toc_kind = consts.TOC_RESOURCE_GROUP
    priority = consts.PRIORITY_RESOURCE_GROUP
    sql_kind = "RESOURCE GROUP"

    # Groups existing in every cluster: they can only be altered
    BUILTIN = ("default_group", "admin_group")


@CatalogObject.register(consts.KIND_ROLE)
class Role(CatalogObject):
    """A role of the cluster."""

    _fields = {
        "superuser": False,
        "inherit": True,
        "create_role": False,
        "create_db": False,
        "can_login": False,
        "connection_limit": -1,
        "password": None,
        "valid_until": None,
        "resource_queue": None,
        "resource_group": None,
        "create_ext_http": False,
        "create_ext_gpfdist_read": False,
        "create_ext_gpfdist_write": False,
        "create_ext_hdfs_read": False,
        "create_ext_hdfs_write": False,
        "time_constraints": (),
    }
    __slots__ = tuple(_fields)

    section = consts.SECTION_GLOBAL
    toc_kind = consts.TOC_ROLE
    priority = consts.PRIORITY_ROLE
    sql_kind = "ROLE"


class TimeConstraint:
    """A period in which a role is denied access."""

    __slots__ = ("start_day", "start_time", "end_day", "end_time")

    def __init__(self, start_day, start_time, end_day, end_time):
        self.start_day = start_day
        self.start_time = start_time
        self.end_day = end_day
        self.end_time = end_time

    def __repr__(self):
        return "<%s %s %s - %s %s>" % (
            self.__class__.__name__,
            self.start_day,
            self.start_time,
            self.end_day,
            self.end_time,
        )


@CatalogObject.register(consts.KIND_ROLE_GRANT)
class RoleGrant(CatalogObject):
    """The membership of a role into another. The name is the member's."""

    _fields = {"role": None, "member": None, "grantor": None, "is_admin": False}
    __slots__ = tuple(_fields)

    section = consts.SECTION_GLOBAL
    toc_kind = consts.TOC_ROLE_GRANT
    priority = consts.PRIORITY_ROLE_GRANT
    referenceable = False


@CatalogObject.register(consts.KIND_TABLESPACE)
class Tablespace(CatalogObject):
    """A tablespace of the cluster."""

    _fields = {"location": None, "filespace": None, "options": None}
    __slots__ = tuple(_fields)

    section = consts.SECTION_GLOBAL
    toc_kind = consts.TOC_TABLESPACE
    priority = consts.PRIORITY_TABLESPACE
    sql_kind = "TABLESPACE"


@CatalogObject.register(consts.KIND_FUNCTION)
class Function(CatalogObject):
    """A function, referred to by name and arguments."""

    _fields = {"arguments": "", "definition": ""}
    __slots__ = tuple(_fields)

    toc_kind = consts.TOC_FUNCTION
    sql_kind = "FUNCTION"

    def __str__(self):
        return "%s(%s)" % (super().__str__(), self.arguments)

    @property
    def toc_name(self):
        # overloaded functions have different entries
        return "%s(%s)" % (self.name, self.arguments)


class Type(CatalogObject):
    """
    Base class for the types.

    Types generated implicitly by the server (the array of a type, the row
    type of a table) have `generated` set; for arrays `array_of` is the
    qualified name of the element type.
    """

    _type_fields = {"generated": None, "array_of": None}
    __slots__ = ()

    toc_kind = consts.TOC_TYPE
    sql_kind = "TYPE"
    is_type = True


@CatalogObject.register(consts.KIND_SHELL_TYPE)
class ShellType(Type):
    """
    A type declared but not defined yet.

    It is found in the catalog if a shell was created but never completed,
    or created by the sequencer to forward-declare a type in a cycle. In the
    latter case `promoted` is True.
    """

    _fields = dict(Type._type_fields, promoted=False)
    __slots__ = tuple(_fields)

    toc_kind = consts.TOC_SHELL_TYPE
    is_type = False

    @classmethod
    def promote(cls, obj):
        """Return the forward declaration of the type `obj`."""
        return cls(obj.oid, obj.schema, obj.name, promoted=True)


@CatalogObject.register(consts.KIND_BASE_TYPE)
class BaseType(Type):
    """A type defined by input/output functions."""

    _fields = dict(
        Type._type_fields,
        input=None,
        output=None,
        receive=None,
        send=None,
        modin=None,
        modout=None,
        internal_length=-1,
        passed_by_value=False,
        alignment=None,
        storage=None,
        default=None,
        element=None,
        delimiter=None,
        category=None,
        preferred=False,
    )
    __slots__ = tuple(_fields)


@CatalogObject.register(consts.KIND_COMPOSITE_TYPE)
class CompositeType(Type):
    """A row type; attributes are 'name type' strings."""

    _fields = dict(Type._type_fields, attributes=())
    __slots__ = tuple(_fields)


@CatalogObject.register(consts.KIND_DOMAIN_TYPE)
class DomainType(Type):
    """A type with constraints on a base type."""

    _fields = dict(
        Type._type_fields,
        base_type=None,
        default=None,
        not_null=False,
        constraints=(),
    )
    __slots__ = tuple(_fields)

    sql_kind = "DOMAIN"


@CatalogObject.register(consts.KIND_ENUM_TYPE)
class EnumType(Type):
    """A type with a list of labels (already quoted)."""

    _fields = dict(Type._type_fields, labels=())
    __slots__ = tuple(_fields)
