"""
Program constants.

This file is part of pg_metadump.
"""

VERSION = "0.1.dev0"


# Output streams composing a dump, in restore order
SECTION_GLOBAL = "global"
SECTION_PREDATA = "predata"
SECTION_POSTDATA = "postdata"

SECTIONS = (SECTION_GLOBAL, SECTION_PREDATA, SECTION_POSTDATA)

KIND_SESSION_GUCS = "session gucs"
KIND_DATABASE = "database"
KIND_DATABASE_GUC = "database guc"
KIND_RESOURCE_QUEUE = "resource queue"
KIND_RESOURCE_GROUP = "resource group"
KIND_ROLE = "role"
KIND_ROLE_GRANT = "role grant"
KIND_TABLESPACE = "tablespace"
KIND_FUNCTION = "function"
KIND_SHELL_TYPE = "shell type"
KIND_BASE_TYPE = "base type"
KIND_COMPOSITE_TYPE = "composite type"
KIND_DOMAIN_TYPE = "domain type"
KIND_ENUM_TYPE = "enum type"

# typtype values: https://www.postgresql.org/docs/current/catalog-pg-type.html
PG_TYPTYPES = {
    "b": KIND_BASE_TYPE,
    "c": KIND_COMPOSITE_TYPE,
    "d": KIND_DOMAIN_TYPE,
    "e": KIND_ENUM_TYPE,
    "p": KIND_SHELL_TYPE,
}

# Tags of the entries in the table of contents
TOC_SESSION_GUCS = "session-gucs"
TOC_DATABASE = "database"
TOC_DATABASE_GUC = "database-guc"
TOC_RESOURCE_QUEUE = "resource-queue"
TOC_RESOURCE_GROUP = "resource-group"
TOC_ROLE = "role"
TOC_ROLE_GRANT = "role-grant"
TOC_TABLESPACE = "tablespace"
TOC_FUNCTION = "predata-function"
TOC_SHELL_TYPE = "predata-shell-type"
TOC_TYPE = "predata-type"

TOC_KINDS = (
    TOC_SESSION_GUCS,
    TOC_DATABASE,
    TOC_DATABASE_GUC,
    TOC_RESOURCE_QUEUE,
    TOC_RESOURCE_GROUP,
    TOC_ROLE,
    TOC_ROLE_GRANT,
    TOC_TABLESPACE,
    TOC_FUNCTION,
    TOC_SHELL_TYPE,
    TOC_TYPE,
)

# Static ranking of the objects in a section. Global objects must be created
# in this order whatever their dependencies (e.g. roles before the grants
# mentioning them); everything in predata is ordered by dependencies only.
PRIORITY_SESSION_GUCS = 0
PRIORITY_DATABASE = 10
PRIORITY_DATABASE_GUC = 20
PRIORITY_RESOURCE_QUEUE = 30
PRIORITY_RESOURCE_GROUP = 40
PRIORITY_ROLE = 50
PRIORITY_ROLE_GRANT = 60
PRIORITY_TABLESPACE = 70
PRIORITY_PREDATA = 100

# Values of the 'generated' attribute of types created implicitly by the
# server, which must not be dumped on their own.
GENERATED_ARRAY = "array"
GENERATED_TABLE = "table"

# Schemas never dumped
SYSTEM_SCHEMAS = ("information_schema", "gp_toolkit")
