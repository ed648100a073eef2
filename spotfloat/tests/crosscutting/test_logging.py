import json
import logging
import os
import tempfile

from spotfloat.crosscutting.logging import (
    CorrelationContext,
    SecretMasker,
    StructuredFormatter,
    backend_var,
    command_var,
    get_logger,
    log_error,
    log_with_fields,
    setup_logging,
)


class TestSecretMasker:
    """Tests for secret masking functionality."""

    def setup_method(self):
        """Set up test fixtures."""
        self.masker = SecretMasker()

    def test_mask_access_token(self):
        text = "access_token: BQC4f9Zk2x8vQm7Lr1Tn5Yp3Hs6Jd0Wa"
        masked = self.masker.mask_secrets(text)

        assert "BQC4f9Zk2x8vQm7Lr1Tn5Yp3Hs6Jd0Wa" not in masked
        assert masked.startswith("access_token: BQC4")

    def test_mask_bearer_credential(self):
        masked = self.masker.mask_secrets("GET /skip with Bearer abcdefghijklmnop1234")

        assert "abcdefghijklmnop1234" not in masked

    def test_plain_text_untouched(self):
        assert self.masker.mask_secrets("Searching tracks for 'daft punk'") == "Searching tracks for 'daft punk'"

    def test_mask_dict_nested(self):
        masked = self.masker.mask_dict({'request': {'header': 'token=abcdefghijklmnop'}, 'count': 2})

        assert 'abcdefghijklmnop' not in masked['request']['header']
        assert masked['count'] == 2


class TestStructuredFormatter:
    """Tests for the JSON formatter."""

    def setup_method(self):
        """Set up test fixtures."""
        self.formatter = StructuredFormatter()

    def _record(self, message="hello", **extra):
        record = logging.LogRecord("spotfloat.test", logging.INFO, __file__, 10, message, None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_basic_fields(self):
        entry = json.loads(self.formatter.format(self._record()))

        assert entry['level'] == 'INFO'
        assert entry['logger'] == 'spotfloat.test'
        assert entry['message'] == 'hello'
        assert entry['ts'].endswith('Z')
        assert 'command' not in entry

    def test_correlation_and_fields(self):
        with CorrelationContext(command='search', backend='relay'):
            entry = json.loads(self.formatter.format(self._record(fields={'count': 2})))

        assert entry['command'] == 'search'
        assert entry['backend'] == 'relay'
        assert entry['fields'] == {'count': 2}


class TestCorrelationContext:
    """Tests for correlation context."""

    def test_values_reset_on_exit(self):
        with CorrelationContext(command='open', backend='api'):
            assert command_var.get() == 'open'
            with CorrelationContext(command='close'):
                assert command_var.get() == 'close'
                assert backend_var.get() == 'api'
            assert command_var.get() == 'open'

        assert command_var.get() is None
        assert backend_var.get() is None


class TestSetupLogging:
    """Tests for logger setup."""

    def teardown_method(self):
        """Clean up test fixtures."""
        logger = logging.getLogger('spotfloat')
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    def test_file_only_logging(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = os.path.join(temp_dir, 'plugin.log')

            logger = setup_logging('DEBUG', log_file, console=False)
            log_with_fields(get_logger('spotfloat.session'), 'INFO', 'Results updated', {'count': 3})
            for handler in logger.handlers:
                handler.flush()

            assert not any(type(h) is logging.StreamHandler for h in logger.handlers)
            with open(log_file, encoding='utf-8') as f:
                entry = json.loads(f.readline())
            assert entry['message'] == 'Results updated'
            assert entry['fields'] == {'count': 3}
            self.teardown_method()

    def test_no_handlers_falls_back_to_null(self):
        logger = setup_logging('INFO', None, console=False)

        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], logging.NullHandler)
        assert logger.propagate is False

    def test_log_error_records_type(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = os.path.join(temp_dir, 'plugin.log')
            setup_logging('INFO', log_file, console=False)

            try:
                raise ValueError("bad payload")
            except ValueError as e:
                log_error(get_logger('spotfloat.backend'), "Search failed", e)

            with open(log_file, encoding='utf-8') as f:
                entry = json.loads(f.readline())
            assert entry['fields']['error_type'] == 'ValueError'
            assert 'exception' in entry
            self.teardown_method()
