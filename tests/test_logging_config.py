"""
Unit tests for logging setup.
"""

import logging
import threading
from logging.handlers import RotatingFileHandler

import pytest

from logging_config import (
    APP_NAMESPACE,
    LogContextFilter,
    get_logger,
    get_order_logger,
    set_thread_name,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_namespace_logger():
    yield
    logger = logging.getLogger(APP_NAMESPACE)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()


def _record(name="atelier_dispatch.test"):
    return logging.LogRecord(name, logging.INFO, __file__, 1, "message", None, None)


class TestLogContextFilter:

    def test_stamps_thread_and_atelier(self):
        record = _record()
        assert LogContextFilter("atelier-diop").filter(record) is True
        assert record.atelier_id == "atelier-diop"
        assert record.thread_name == threading.current_thread().name

    def test_missing_atelier_shows_dash(self):
        record = _record()
        LogContextFilter("").filter(record)
        assert record.atelier_id == "-"

    def test_thread_name_from_worker(self):
        names = []

        def work():
            set_thread_name("Sync")
            record = _record()
            LogContextFilter().filter(record)
            names.append(record.thread_name)

        worker = threading.Thread(target=work)
        worker.start()
        worker.join()
        assert names == ["Sync"]


class TestSetupLogging:

    def test_console_only_by_default(self):
        logger = setup_logging("atelier-test", log_level=logging.DEBUG)
        assert logger.name == APP_NAMESPACE
        assert logger.level == logging.DEBUG
        assert not logger.propagate
        assert len(logger.handlers) == 1
        assert not isinstance(logger.handlers[0], RotatingFileHandler)

    def test_repeated_setup_does_not_stack_handlers(self):
        setup_logging("atelier-test")
        logger = setup_logging("atelier-test")
        assert len(logger.handlers) == 1

    def test_file_logging_writes_app_and_error_logs(self, tmp_path):
        logger = setup_logging(
            "atelier-test", log_dir=tmp_path, enable_file_logging=True, max_bytes=1024, backup_count=2
        )
        files = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        assert len(files) == 2
        assert {h.level for h in files} == {logging.INFO, logging.ERROR}
        assert all(h.maxBytes == 1024 and h.backupCount == 2 for h in files)

        get_logger("services.sync_service").error("Flush failed")
        for handler in logger.handlers:
            handler.flush()

        error_log = (tmp_path / f"{APP_NAMESPACE}_error.log").read_text(encoding="utf-8")
        assert "[atelier-test] atelier_dispatch.services.sync_service - Flush failed" in error_log

    def test_quiets_http_client_logs(self):
        setup_logging("atelier-test", log_level=logging.DEBUG)
        assert logging.getLogger("httpx").level == logging.WARNING


class TestLoggerNames:

    def test_get_logger_prefixes_namespace(self):
        assert get_logger("services.dispatch").name == "atelier_dispatch.services.dispatch"
        assert get_logger("atelier_dispatch.app").name == "atelier_dispatch.app"

    def test_order_logger_uses_short_id(self):
        assert get_order_logger("0f3c9a2e-1111-2222").name == "atelier_dispatch.order.0f3c9a2e"
        assert get_order_logger("o-1").name == "atelier_dispatch.order.o-1"
