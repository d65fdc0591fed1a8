import json
import logging

from promptrelay.config import ProxyConfig
from promptrelay.logging_utils import ERROR_LOG_NAME, JsonlLogger, configure_logging


def test_jsonl_logger_rotates(tmp_path, monkeypatch):
    log_file = tmp_path / "logs" / "requests.jsonl"
    logger = JsonlLogger(str(log_file), max_bytes=5)

    monkeypatch.setattr(
        "promptrelay.logging_utils.time.strftime",
        lambda *_: "19700101-000000",
    )

    logger.log({"a": 1})
    assert log_file.exists()

    logger.log({"outcome": "ok", "prompt": "a cat"})

    rotated = log_file.with_name(log_file.name + ".19700101-000000")
    assert rotated.exists(), "Rotated file missing"
    with open(log_file, encoding="utf-8") as fh:
        content = fh.read().strip()
    assert json.loads(content) == {"outcome": "ok", "prompt": "a cat"}


def test_jsonl_logger_handles_missing_directory(tmp_path):
    log_file = tmp_path / "missing" / "requests.jsonl"
    logger = JsonlLogger(str(log_file), max_bytes=100)
    logger.log({"event": "ok"})
    assert log_file.exists()


def test_configure_logging_attaches_error_file_once(tmp_path):
    cfg = ProxyConfig(log_path=str(tmp_path / "logs" / "requests.jsonl"))
    package_logger = logging.getLogger("promptrelay")
    before = list(package_logger.handlers)
    try:
        configure_logging(cfg)
        configure_logging(cfg)
        added = [h for h in package_logger.handlers if h not in before]
        assert len(added) == 1
        assert added[0].baseFilename.endswith(ERROR_LOG_NAME)

        logging.getLogger("promptrelay.app").error("[chat_completions] boom")
        added[0].flush()
        text = (tmp_path / "logs" / ERROR_LOG_NAME).read_text(encoding="utf-8")
        assert "[chat_completions] boom" in text
    finally:
        for handler in package_logger.handlers[:]:
            if handler not in before:
                package_logger.removeHandler(handler)
                handler.close()
