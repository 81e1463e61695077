#!/usr/bin/env python3
"""
pg_metadump -- setup script
"""

# This file is part of pg_metadump


import re
import os
from setuptools import setup, find_packages

# Grab the version without importing the module
# or we will get import errors on install if prerequisites are still missing
fn = os.path.join(os.path.dirname(__file__), "metadump/consts.py")
with open(fn) as f:
    m = re.search(r"""(?mi)^VERSION\s*=\s*["']+([^'"]+)["']+""", f.read())
if m:
    version = m.group(1)
else:
    raise ValueError("cannot find VERSION in the consts module")

# Read the description from the README
with open("README.rst") as f:
    readme = f.read()

classifiers = """
Development Status :: 3 - Alpha
Environment :: Console
Intended Audience :: Developers
Intended Audience :: System Administrators
License :: OSI Approved :: BSD License
Operating System :: POSIX
Programming Language :: Python :: 3
Topic :: Database
Topic :: System :: Archiving :: Backup
Topic :: System :: Systems Administration
Topic :: Utilities
"""

# PyYAML version is relatively strict because we override internal interfaces.
requirements = """
psycopg
PyYAML>=5.3
jsonschema
"""

setup(
    name="pg_metadump",
    description=readme.splitlines()[0],
    long_description="\n".join(readme.splitlines()[2:]).lstrip(),
    url="https://github.com/pg-metadump/pg_metadump",
    license="BSD",
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={"test": ["pytest"]},
    packages=find_packages(exclude=["tests"]),
    package_data={"metadump": ["schema/*.yaml"]},
    entry_points={"console_scripts": ["pg_metadump = metadump.cli:script"]},
    classifiers=[x for x in classifiers.split("\n") if x],
    zip_safe=False,
    version=version,
)
