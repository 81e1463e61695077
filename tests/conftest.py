import pytest

from metadump.dumper import Dumper
from metadump.dbreader import DbReader

from .testreader import TestReader


pytest_plugins = ("tests.fix_db",)


@pytest.fixture
def dumper():
    """Return a `metadump.Dumper` configured for testing."""
    reader = TestReader()
    dumper = Dumper(reader=reader)
    return dumper


@pytest.fixture
def dbdumper(dsn):
    """Return a `metadump.Dumper` reading from the test database."""
    reader = DbReader(dsn)
    dumper = Dumper(reader=reader)
    return dumper
