import logging

from common_rest.core.settings import Settings
from common_rest.main import configure_logging


def test_log_file_receives_records(tmp_path):
    log_file = tmp_path / "logs" / "common-rest.log"
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging(Settings(log_level="DEBUG", log_file=log_file))
        logging.getLogger("commonrest.test").debug("hello from the test")
        for h in root.handlers:
            h.flush()
        assert "hello from the test" in log_file.read_text(encoding="utf-8")
    finally:
        for h in root.handlers:
            if h not in saved_handlers:
                h.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
