import logging
import os
import time

import pytest

from buildworker.logging.log import init_logging


@pytest.fixture(autouse=True)
def _reset_logger():
    yield
    logger = logging.getLogger("buildworker-log-test")
    for h in list(logger.handlers):
        h.close()
    logger.handlers.clear()


def test_log_file_is_named_after_the_stack(tmp_path):
    logger, run_id, log_path = init_logging(base_dir=tmp_path, name="buildworker-log-test", stack="dev")
    logger.debug("hello from the test")
    for h in logger.handlers:
        h.flush()

    assert log_path.parent == tmp_path
    assert log_path.name.startswith("dev-")
    assert run_id[:8] in log_path.name
    assert "hello from the test" in log_path.read_text()
    assert logger.propagate is False


def test_env_var_chooses_the_log_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("BUILDWORKER_LOG_DIR", str(tmp_path / "logs"))
    _, _, log_path = init_logging(name="buildworker-log-test")
    assert log_path.parent == tmp_path / "logs"


def test_old_logs_are_pruned(tmp_path):
    old = []
    for i in range(3):
        p = tmp_path / f"local-old-{i}.log"
        p.write_text("x")
        stamp = time.time() - 3600 * (i + 1)
        os.utime(p, (stamp, stamp))
        old.append(p)

    _, _, log_path = init_logging(base_dir=tmp_path, name="buildworker-log-test", keep=2)

    remaining = sorted(tmp_path.glob("*.log"))
    assert len(remaining) == 2
    assert log_path in remaining
    assert old[0] in remaining  # the newest of the old ones
