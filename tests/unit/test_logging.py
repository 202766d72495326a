import logging
from core.logging import setup_logging


def test_setup_logging_quiets_third_party_loggers(caplog):
    caplog.set_level(logging.INFO)

    setup_logging("debug")

    assert logging.getLogger("apscheduler").level == logging.WARNING
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    assert "Sync service logging at DEBUG" in caplog.text
    assert "job=users_latest_sync" in caplog.text
