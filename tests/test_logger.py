from __future__ import annotations

import logging
from pathlib import Path

from pagestreamer.utils import logger as logger_module


def test_resolve_logs_dir_honours_environment(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("PAGESTREAMER_LOG_DIR", str(tmp_path / "logs"))
    assert logger_module.resolve_logs_dir() == (tmp_path / "logs").resolve()

    monkeypatch.delenv("PAGESTREAMER_LOG_DIR")
    assert logger_module.resolve_logs_dir().name == "pagestreamer_logs"


def test_set_debug_switches_package_level() -> None:
    try:
        logger_module.set_debug(True)
        assert logger_module.logger.level == logging.DEBUG
    finally:
        logger_module.set_debug(False)
    assert logger_module.logger.level == logging.INFO


def test_colored_formatter_renders_lazy_arguments() -> None:
    formatter = logger_module.ColoredFormatter("%(levelname2)s %(message2)s", use_color=False)
    record = logging.LogRecord(
        "pagestreamer", logging.WARNING, __file__, 1, "loaded %s in %dms", ("a.css", 12), None
    )
    assert formatter.format(record) == "WARNING loaded a.css in 12ms"
