"""Run every test case of a set of configs against a WES."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from gh_trs import wes
from gh_trs.config.types import Config
from gh_trs.env import DEFAULT_DOCKER_HOST, in_ci
from gh_trs.errors import TestFailed
from gh_trs.remote import fetch_raw_content

logger = logging.getLogger(__name__)

POLL_INTERVAL = 5.0
TEST_LOG_DIR = "test-logs"


@dataclass
class TestResult:
    workflow_id: str
    version: str
    test_id: str
    status: wes.RunStatus
    run_log: str

    __test__ = False

    @property
    def passed(self) -> bool:
        return self.status == wes.RunStatus.COMPLETE


def wait_for_run(
    client: wes.WesClient,
    run_id: str,
    poll_interval: float = POLL_INTERVAL,
) -> wes.RunStatus:
    status = client.get_run_status(run_id)
    while status == wes.RunStatus.RUNNING:
        logger.debug("WES run %s status: %s", run_id, status.value)
        time.sleep(poll_interval)
        status = client.get_run_status(run_id)
    return status


def write_test_log(result: TestResult, log_dir: Path | str | None = None) -> Path:
    """Write a run log to ``test-logs/{id}_{version}_{test_id}.log``."""
    directory = Path(log_dir) if log_dir else Path.cwd() / TEST_LOG_DIR
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{result.workflow_id}_{result.version}_{result.test_id}.log"
    path.write_text(result.run_log, encoding="utf-8")
    return path


def run_config_tests(
    client: wes.WesClient,
    config: Config,
    poll_interval: float = POLL_INTERVAL,
    fetch: Callable[[str], str] = fetch_raw_content,
    log_dir: Path | str | None = None,
) -> list[TestResult]:
    results = []
    write_logs = log_dir is not None or in_ci()
    for test_case in config.workflow.testing:
        title = f"{config.label}, test_id: {test_case.id}"
        logger.info("Testing %s", title)
        form = wes.build_run_form(config.workflow, test_case, fetch=fetch)
        run_id = client.post_run(form)
        logger.info("WES run_id: %s", run_id)
        status = wait_for_run(client, run_id, poll_interval)
        run_log = json.dumps(client.get_run_log(run_id), indent=2)
        result = TestResult(
            workflow_id=config.id,
            version=config.version,
            test_id=test_case.id,
            status=status,
            run_log=run_log,
        )
        if write_logs:
            write_test_log(result, log_dir)
        if result.passed:
            logger.info("Complete %s", title)
            logger.debug("Run log:\n%s", run_log)
        else:
            logger.error("Failed %s. Run log:\n%s", title, run_log)
        results.append(result)
    return results


def run_tests(
    configs: list[Config],
    wes_location: str | None = None,
    docker_host: str = DEFAULT_DOCKER_HOST,
    client: wes.WesClient | None = None,
    poll_interval: float = POLL_INTERVAL,
    fetch: Callable[[str], str] = fetch_raw_content,
    log_dir: Path | str | None = None,
) -> list[TestResult]:
    """Run the test cases of every config and collect the results.

    When neither ``wes_location`` nor ``client`` is given, a sapporo-service
    sidecar is started on ``docker_host`` and stopped afterwards.
    """
    manage_sidecar = client is None and wes_location is None
    if manage_sidecar:
        wes.start_wes(docker_host)
        wes_location = wes.default_wes_location()
    client = client or wes.WesClient(wes_location)
    logger.info("Use WES location: %s for testing", client.location)

    try:
        client.check_supported()
        results = []
        for config in configs:
            results.extend(run_config_tests(client, config, poll_interval, fetch, log_dir))
    finally:
        if manage_sidecar:
            wes.stop_wes(docker_host)
    return results


def check_test_results(results: list[TestResult]) -> None:
    """Raise TestFailed naming every failed test case."""
    failed = [r for r in results if not r.passed]
    if failed:
        raise TestFailed(
            f"Failed {len(failed)} tests: " + ", ".join(r.test_id for r in failed)
        )
