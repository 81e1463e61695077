import logging

import pytest

from metadump import cli


def test_defaults():
    opt = cli.parse_cmdline(["conf.yaml"])
    assert opt.config_file == "conf.yaml"
    assert opt.dsn == ""
    assert opt.jobs is None
    assert not opt.test
    assert opt.loglevel == logging.INFO


def test_options():
    opt = cli.parse_cmdline(["conf.yaml", "--dsn", "dbname=x", "-j", "4", "-v"])
    assert opt.dsn == "dbname=x"
    assert opt.jobs == 4
    assert opt.loglevel == logging.DEBUG


@pytest.mark.parametrize("args", [[], ["c.yaml", "-q", "-v"], ["c.yaml", "-j", "0"]])
def test_bad_args(args):
    with pytest.raises(SystemExit):
        cli.parse_cmdline(args)


def test_bad_config_exit(tmp_path, monkeypatch):
    fn = tmp_path / "conf.yaml"
    fn.write_text("sections: {}\n")
    monkeypatch.setattr("sys.argv", ["pg_metadump", str(fn)])
    with pytest.raises(SystemExit) as excinfo:
        cli.script()
    assert excinfo.value.code == 1
