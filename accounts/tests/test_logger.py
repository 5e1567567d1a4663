import logging

from common.logger import get_logger, setup_logger


def test_logs_to_file_when_configured(monkeypatch, tmp_path):
    log_file = tmp_path / "logs" / "accounts.log"
    monkeypatch.setenv("LOG_FILE", str(log_file))
    monkeypatch.setenv("LOG_LEVEL", "debug")

    log = setup_logger("accounts-file-test")
    try:
        assert log.level == logging.DEBUG
        assert len(log.handlers) == 2
        log.debug("account created")
        for handler in log.handlers:
            handler.flush()
        assert "account created" in log_file.read_text()
        # a second setup does not stack handlers
        assert len(setup_logger("accounts-file-test").handlers) == 2
    finally:
        for handler in list(log.handlers):
            handler.close()
            log.removeHandler(handler)


def test_stdout_only_by_default(monkeypatch):
    monkeypatch.delenv("LOG_FILE", raising=False)
    log = setup_logger("accounts-stdout-test")
    try:
        assert [type(handler) for handler in log.handlers] == [logging.StreamHandler]
        assert get_logger("manager").name == "accounts.manager"
    finally:
        for handler in list(log.handlers):
            log.removeHandler(handler)
