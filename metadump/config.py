"""
Configuration file loading and validation.

This file is part of pg_metadump.
"""

import re
import logging
from importlib import resources

import yaml
from jsonschema import Draft7Validator

from .yaml import load_yaml

logger = logging.getLogger("metadump.config")

validator = Draft7Validator(
    schema=yaml.safe_load(
        resources.files("metadump").joinpath("schema/config.yaml").read_bytes()
    )
)


def load_config(filename):
    """
    Load and validate a configuration file.

    Return the content as a Python object, validated according to the
    ``config.yaml`` schema, else None (and log about errors).
    """
    try:
        with open(filename) as f:
            conf = load_yaml(f)
    except Exception as e:
        logger.error("loading %s: %s", filename, e)
        return None

    errors = get_config_errors(conf, filename)
    if errors:
        for error in errors:
            logger.error("%s", error)
        return None

    return conf


def get_config_errors(conf, filename="<no name>"):
    """
    Validate a configuration object and return the list of errors found.
    """
    rv = []

    # Give a clearer error message than what jsonschema would give
    # Something like: None is not of type 'object'
    if not isinstance(conf, dict):
        msg = "config must be an object containing 'sections'"
        rv.append(located_message(None, filename, msg))
        return rv

    for error in validator.iter_errors(conf):
        loc = location_from_error(conf, error)
        rv.append(located_message(loc, filename, error.message))

    rv.extend(_get_destinations_errors(conf, filename))

    # sort by line number
    def lineno(s):
        m = re.search(r":(\d+)", s)
        return int(m.group(1)) if m is not None else 0

    rv.sort(key=lineno)

    return rv


def _get_destinations_errors(conf, filename):
    """
    Return the errors of files used for more than one output.

    jsonschema can't compare values across different keys.
    """
    rv = []
    sections = conf.get("sections")
    if not isinstance(sections, dict):
        return rv

    seen = {}
    for section, dest in sections.items():
        if not isinstance(dest, str):
            continue
        if dest in seen:
            loc = location_from_attribs(sections, section)
            msg = "sections %s and %s are both written to %s" % (
                seen[dest],
                section,
                dest,
            )
            rv.append(located_message(loc, filename, msg))
        else:
            seen[dest] = section

    toc = conf.get("toc")
    if isinstance(toc, str) and toc in seen:
        loc = location_from_attribs(conf, "toc")
        msg = "the toc can't be written to %s, used by section %s" % (toc, seen[toc])
        rv.append(located_message(loc, filename, msg))

    return rv


def located_message(loc, filename, message):
    """
    Add location informations to a message string.
    """
    if loc:
        return "at %s: %s" % (loc, message)
    else:
        return "in %s: %s" % (filename, message)


def location_from_attribs(conf, *items):
    """
    Return the position of the last of `items` in a container parsed from yaml.
    """
    assert items
    filename = getattr(conf, "filename", None)
    itemlines = getattr(conf, "itemlines", None)
    if not (filename and itemlines):
        return
    try:
        linenos = [itemlines[item] for item in items]
    except (KeyError, IndexError):
        return

    return "%s:%s" % (filename, max(linenos))


def location_from_error(conf, error):
    """
    Return location information from a jsonschema validation error.
    """
    if error.validator == "additionalProperties":
        rv = _location_from_addprops(error)
        if rv is not None:
            return rv

    # walk down the document to the element with the error
    trail = [conf]
    for item in error.path:
        trail.append(trail[-1][item])

    # Containers know their own position
    filename = getattr(trail[-1], "filename", None)
    lineno = getattr(trail[-1], "lineno", None)
    if filename and lineno:
        return "%s:%s" % (filename, lineno)

    if len(trail) < 2:
        return

    # Scalars are found by their parent
    loc = location_from_attribs(trail[-2], error.path[-1])
    if loc is not None and isinstance(trail[-2], dict):
        # also add the attribute name
        loc = "%s: %s" % (loc, error.path[-1])
    return loc


def _location_from_addprops(error):
    # Report the position of the unexpected attribute, not of its object
    m = re.search(r"'([^']*)' was unexpected", error.message)
    if m is None:
        return

    return location_from_attribs(error.instance, m.group(1))
