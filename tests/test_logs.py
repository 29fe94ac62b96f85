from __future__ import annotations

import logging

from loguru import logger

from commentscope.logs import LogConfig


def test_console_level_follows_verbose():
    assert LogConfig().console_level == "WARNING"
    assert LogConfig(verbose=True).console_level == "DEBUG"


def test_file_sink_collects_component_and_stdlib_logs(tmp_path):
    log_file = tmp_path / "logs" / "commentscope.log"
    config = LogConfig(log_file=log_file)
    config.configure()

    config.get_logger("sync").debug("hello from sync")
    logging.getLogger("urllib3.connectionpool").warning("stdlib message")
    logger.remove()

    text = log_file.read_text()
    assert "| sync | " in text
    assert "hello from sync" in text
    assert "urllib3.connectionpool" in text
    assert "stdlib message" in text
