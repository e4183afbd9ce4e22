"""
Unit Tests for structured logging helpers
"""
import logging

from school_ledger.core.logging_config import logger, safe_extra


class TestSafeExtra:

    def test_reserved_keys_are_prefixed(self):
        extra = safe_extra({"created": 3, "message": "x", "ledger_kind": "fee"})
        assert extra == {"ctx_created": 3, "ctx_message": "x", "ledger_kind": "fee"}


class TestLedgerEvent:

    def test_reserved_kwarg_does_not_raise(self, caplog):
        caplog.set_level(logging.INFO, logger="school_ledger")

        logger.log_ledger_event("fee_bulk_create", "class-1", created=2, module="fees")

        record = caplog.records[-1]
        assert record.ledger_kind == "fee_bulk_create"
        assert record.ctx_created == 2
        assert record.ctx_module == "fees"

    def test_auth_event_with_reserved_kwarg(self, caplog):
        caplog.set_level(logging.INFO, logger="school_ledger")

        logger.log_auth_event("login", True, user_email="a@example.com", name="admin")

        assert caplog.records[-1].ctx_name == "admin"
