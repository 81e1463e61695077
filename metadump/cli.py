#!/usr/bin/env python3
"""
Dump the metadata of a PostgreSQL or Greenplum database into sections.
"""

# This file is part of pg_metadump.

import sys
import logging
from signal import SIGPIPE
from argparse import ArgumentParser, RawDescriptionHelpFormatter

from .config import load_config
from .consts import VERSION
from .dumper import Dumper
from .dbreader import DbReader
from .exceptions import MetaDumpException

logger = logging.getLogger("metadump")


def main():
    """Run the program, raise exceptions."""
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s"
    )
    opt = parse_cmdline()
    logger.setLevel(opt.loglevel)

    # Bail out if there is any error in the config
    conf = load_config(opt.config_file)
    if conf is None:
        return 1

    reader = DbReader(opt.dsn)
    dumper = Dumper(reader=reader)
    dumper.add_config(conf)
    if opt.jobs is not None:
        dumper.jobs = opt.jobs

    # Plan now, before opening the output files to write.
    reader.load_schema()
    dumper.plan_dump()

    dumper.run_dump(test=opt.test)
    if not opt.test:
        dumper.save_toc()


def script():
    """Run the program and terminate the process."""
    try:
        sys.exit(main())

    except MetaDumpException as e:
        if str(e):
            logger.error("%s", e)
        sys.exit(1)

    except BrokenPipeError as e:
        logger.error("dump interrupted: %s", e)
        sys.exit(SIGPIPE + 128)

    except Exception:
        logger.exception("unexpected error")
        sys.exit(1)

    except KeyboardInterrupt:
        logger.info("user interrupt")
        sys.exit(1)


def parse_cmdline(args=None):
    parser = ArgumentParser(
        description=__doc__, formatter_class=RawDescriptionHelpFormatter
    )

    parser.add_argument("--version", action="version", version="%%(prog)s %s" % VERSION)

    parser.add_argument(
        "config_file",
        metavar="config",
        help="yaml file describing the sections to dump and where",
    )

    parser.add_argument(
        "--dsn",
        default="",
        help="database connection string [default: %(default)r]",
    )

    parser.add_argument(
        "--jobs",
        "-j",
        type=int,
        help="number of sections to write concurrently [default: from config]",
    )

    parser.add_argument(
        "--test",
        action="store_true",
        help="read and sort the catalog without writing any file",
    )

    g = parser.add_mutually_exclusive_group()
    g.add_argument(
        "-q",
        "--quiet",
        help="talk less",
        dest="loglevel",
        action="store_const",
        const=logging.WARN,
        default=logging.INFO,
    )
    g.add_argument(
        "-v",
        "--verbose",
        help="talk more",
        dest="loglevel",
        action="store_const",
        const=logging.DEBUG,
        default=logging.INFO,
    )

    opt = parser.parse_args(args)
    if opt.jobs is not None and opt.jobs < 1:
        parser.error("--jobs must be at least 1")

    return opt
