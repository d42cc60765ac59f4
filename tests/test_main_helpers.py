"""
Unit tests for small helpers in __main__.py:
- _report_issues: prints warnings/errors collected in subsections
- _configure_logging: attaches a file handler when asked
"""

import logging

from phenocompare.__main__ import _configure_logging, _report_issues
from stairval.notepad import create_notepad


def test_report_issues_outputs_both_blocks(capsys):
    """
    When notepad sections contain both warnings and errors, the helper should print both.
    """
    n = create_notepad("report")
    n.add_warning("warn 1")
    sub = n.add_subsection("group A")
    sub.add_error("err 1")

    _report_issues(n)
    out = capsys.readouterr().out
    assert "Warnings found in input" in out
    assert "warn 1" in out
    assert "Errors found in input" in out
    assert "err 1" in out


def test_report_issues_quiet_without_issues(capsys):
    _report_issues(create_notepad("report"))
    assert capsys.readouterr().out == ""


def test_configure_logging_writes_file(tmp_path):
    log_file = tmp_path / "run.log"
    _configure_logging(False, str(log_file))
    try:
        logging.getLogger("phenocompare.test").info("hello log")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "INFO hello log" in log_file.read_text(encoding="utf-8")
    finally:
        root = logging.getLogger()
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
