"""
Unit tests for logger utilities.

Tests ContextAwareLogger, the correlation filter and AzureQueueHandler.
"""

import json
import logging
import sys
from unittest.mock import Mock, patch

import pytest
from azure.core.exceptions import AzureError

from integrity_sync.exceptions import clear_correlation_id, set_correlation_id
from integrity_sync.utils.logger import (
    AzureQueueHandler,
    ContextAwareLogger,
    CorrelationContextFilter,
    configure_logging,
    get_logger,
)

CONNECTION_STRING = "DefaultEndpointsProtocol=https;AccountName=test;AccountKey=dGVzdA=="


def make_record(msg="Task created", level=logging.INFO, **extra):
    record = logging.LogRecord(
        name="function.test",
        level=level,
        pathname=__file__,
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
        func="handle",
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestContextAwareLogger:
    """Test ContextAwareLogger functionality."""

    def setup_method(self):
        self.mock_logger = Mock(spec=logging.Logger)
        self.context_logger = ContextAwareLogger(self.mock_logger)

    def test_set_level(self):
        self.context_logger.set_level(logging.DEBUG)
        self.mock_logger.setLevel.assert_called_once_with(logging.DEBUG)

    def test_no_extras(self):
        self.context_logger.info("Event ignored")

        self.mock_logger.info.assert_called_once_with("Event ignored", extra={})

    def test_extras_are_appended_and_preserved(self):
        extra = {"owner": "Acme", "repo": "widgets"}

        self.context_logger.warning("No matching list group", extra=extra)

        self.mock_logger.warning.assert_called_once_with(
            "No matching list group | owner=Acme | repo=widgets", extra=extra
        )

    def test_passes_other_kwargs_through(self):
        error = ValueError("boom")

        self.context_logger.error("Failed", exc_info=error)

        self.mock_logger.error.assert_called_once_with("Failed", extra={}, exc_info=error)

    @pytest.mark.parametrize("level", ["debug", "info", "warning", "error", "exception"])
    def test_every_level_is_forwarded(self, level):
        getattr(self.context_logger, level)("message", extra={"k": "v"})

        getattr(self.mock_logger, level).assert_called_once_with("message | k=v", extra={"k": "v"})


class TestCorrelationContextFilter:
    def teardown_method(self):
        clear_correlation_id()

    def test_stamps_current_correlation_id(self):
        set_correlation_id("delivery-42")
        record = make_record()

        assert CorrelationContextFilter().filter(record)
        assert record.correlation_id == "delivery-42"

    def test_leaves_record_alone_without_correlation_id(self):
        record = make_record()

        assert CorrelationContextFilter().filter(record)
        assert not hasattr(record, "correlation_id")


class TestAzureQueueHandler:
    """Test AzureQueueHandler functionality."""

    @pytest.fixture
    def queue_service(self):
        with patch("integrity_sync.utils.logger.QueueServiceClient") as service_class:
            service = service_class.from_connection_string.return_value
            service.list_queues.return_value = []
            yield service

    @pytest.fixture
    def queue_client(self):
        with patch("integrity_sync.utils.logger.QueueClient") as client_class:
            yield client_class.from_connection_string.return_value

    def test_creates_missing_queue(self, queue_service):
        AzureQueueHandler(queue_name="logs-queue", connection_string=CONNECTION_STRING)

        queue_service.create_queue.assert_called_once_with("logs-queue")

    def test_existing_queue_is_not_recreated(self, queue_service):
        existing = Mock()
        existing.name = "logs-queue"
        queue_service.list_queues.return_value = [existing]

        AzureQueueHandler(queue_name="logs-queue", connection_string=CONNECTION_STRING)

        queue_service.create_queue.assert_not_called()

    def test_queue_setup_failure_does_not_raise(self, queue_service):
        queue_service.list_queues.side_effect = AzureError("unavailable")

        handler = AzureQueueHandler(connection_string=CONNECTION_STRING)

        assert handler.log_buffer == []

    def test_missing_connection_string(self, app_config):
        with patch.object(sys, "stderr") as stderr:
            handler = AzureQueueHandler(connection_string=None)

        stderr.write.assert_called_once()
        handler.emit(make_record())
        handler.flush()
        assert handler.log_buffer == []

    def test_build_entry(self, queue_service):
        handler = AzureQueueHandler(connection_string=CONNECTION_STRING)
        record = make_record(correlation_id="delivery-1", list_id="list-1")

        entry = handler.build_entry(record)

        assert entry["level"] == "INFO"
        assert entry["logger"] == "function.test"
        assert entry["message"] == "Task created"
        assert entry["function"] == "handle"
        assert entry["line"] == 42
        assert entry["correlation_id"] == "delivery-1"
        assert entry["context"] == {"list_id": "list-1"}
        assert "exception" not in entry

    def test_build_entry_with_exception(self, queue_service):
        handler = AzureQueueHandler(connection_string=CONNECTION_STRING)
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_record(level=logging.ERROR)
            record.exc_info = sys.exc_info()

        entry = handler.build_entry(record)

        assert entry["exception"]["type"] == "RuntimeError"
        assert entry["exception"]["message"] == "boom"
        assert entry["exception"]["traceback"]

    def test_buffers_until_batch_size(self, queue_service, queue_client):
        handler = AzureQueueHandler(connection_string=CONNECTION_STRING, batch_size=2)

        handler.emit(make_record("first"))
        queue_client.send_message.assert_not_called()
        handler.emit(make_record("second"))

        assert queue_client.send_message.call_count == 2
        sent = json.loads(queue_client.send_message.call_args_list[0].args[0])
        assert sent["message"] == "first"
        assert handler.log_buffer == []

    def test_close_flushes_remaining_entries(self, queue_service, queue_client):
        handler = AzureQueueHandler(connection_string=CONNECTION_STRING, batch_size=10)
        handler.emit(make_record())

        handler.close()

        queue_client.send_message.assert_called_once()

    def test_send_failure_clears_buffer(self, queue_service, queue_client):
        queue_client.send_message.side_effect = AzureError("throttled")
        handler = AzureQueueHandler(connection_string=CONNECTION_STRING, batch_size=1)

        handler.emit(make_record())

        assert handler.log_buffer == []


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def reset_function_logger(self):
        with patch("integrity_sync.utils.logger._function_logger", None):
            yield

    def test_console_only(self, app_config):
        logger = configure_logging("test_function", log_level="DEBUG", enable_queue=False)

        assert isinstance(logger, ContextAwareLogger)
        assert logger.logger.name == "function.test_function"
        assert logger.logger.level == logging.DEBUG
        assert len(logger.logger.handlers) == 1
        assert get_logger() is logger

    def test_reconfiguring_replaces_handlers(self, app_config):
        configure_logging("test_function", enable_queue=False)
        logger = configure_logging("test_function", enable_queue=False)

        assert len(logger.logger.handlers) == 1

    def test_queue_handler_added(self, app_config):
        with patch("integrity_sync.utils.logger.QueueServiceClient"), patch(
            "integrity_sync.utils.logger.QueueClient"
        ):
            logger = configure_logging(
                "queued_function", enable_queue=True, connection_string=CONNECTION_STRING
            )
            handlers = list(logger.logger.handlers)
            for handler in handlers:
                logger.logger.removeHandler(handler)
                handler.close()

        assert AzureQueueHandler in [type(handler) for handler in handlers]

    def test_get_logger_before_configuration(self, app_config):
        logger = get_logger(log_level="WARNING")

        assert logger.logger.name == "integrity_sync"
        assert logger.logger.level == logging.WARNING
