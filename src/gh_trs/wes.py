"""GA4GH WES client and the sapporo-service sidecar container.

Tests are executed by a sapporo-service (a WES implementation). When no WES
location is given, gh-trs starts one in a docker container and stops it
when testing is finished.
"""

from __future__ import annotations

import json
import logging
import subprocess
import tempfile
import time
from enum import Enum
from pathlib import Path
from typing import Callable

import requests

from gh_trs.config.types import FileType, LanguageType, Testing, TestFileType, Workflow
from gh_trs.env import request_timeout, sapporo_run_dir
from gh_trs.errors import ConfigError, GhTrsError, TransportError
from gh_trs.remote import fetch_raw_content

logger = logging.getLogger(__name__)

SAPPORO_SERVICE_IMAGE = "ghcr.io/sapporo-wes/sapporo-service:1.1.1"
SAPPORO_SERVICE_NAME = "gh-trs-sapporo-service"
SAPPORO_NETWORK = "gh-trs-network"
SAPPORO_PORT = 1122
SUPPORTED_WES_VERSION = "sapporo-wes-1.0.1"

WORKFLOW_ENGINES = {
    LanguageType.CWL: "cwltool",
    LanguageType.WDL: "cromwell",
    LanguageType.NFL: "nextflow",
    LanguageType.SMK: "snakemake",
}


# ── sidecar ─────────────────────────────────────────────────────────


def inside_docker_container() -> bool:
    return Path("/.dockerenv").exists()


def default_wes_location() -> str:
    if inside_docker_container():
        return f"http://{SAPPORO_SERVICE_NAME}:{SAPPORO_PORT}"
    return f"http://localhost:{SAPPORO_PORT}"


def _run_docker(docker_host: str, args: list[str]) -> subprocess.CompletedProcess:
    """Run a docker command against ``docker_host`` and return the result."""
    try:
        return subprocess.run(
            ["docker", "-H", docker_host] + args,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError:
        raise GhTrsError("Please make sure that the docker command is present in your PATH")


def check_wes_running(docker_host: str) -> bool:
    result = _run_docker(docker_host, ["ps", "-f", f"name={SAPPORO_SERVICE_NAME}"])
    if result.returncode != 0:
        raise GhTrsError(
            f"Failed to check gh-trs's sapporo-service status: {result.stderr.strip()}"
        )
    return SAPPORO_SERVICE_NAME in result.stdout


def start_wes(docker_host: str, wait: float = 3.0) -> None:
    """Start the sapporo-service container unless it is already running."""
    if check_wes_running(docker_host):
        logger.info("The sapporo-service is already running, skip starting it")
        return
    logger.info("Starting the sapporo-service for gh-trs using docker_host: %s", docker_host)
    run_dir = str(sapporo_run_dir())
    socket_path = docker_host.split("://", 1)[-1]
    if inside_docker_container():
        network = ["--network", SAPPORO_NETWORK]
    else:
        network = ["-p", f"{SAPPORO_PORT}:{SAPPORO_PORT}"]
    result = _run_docker(docker_host, [
        "run", "-d", "--rm",
        "-v", f"{socket_path}:/var/run/docker.sock",
        "-v", f"{tempfile.gettempdir()}:/tmp",
        "-v", f"{run_dir}:{run_dir}",
        *network,
        "--name", SAPPORO_SERVICE_NAME,
        SAPPORO_SERVICE_IMAGE,
        "sapporo", "--run-dir", run_dir,
    ])
    if result.returncode != 0:
        raise GhTrsError(f"Failed to start the sapporo-service: {result.stderr.strip()}")
    logger.debug("Stdout from docker: %s", result.stdout.strip())
    time.sleep(wait)


def stop_wes(docker_host: str, wait: float = 3.0) -> None:
    """Stop the sapporo-service container if it is running."""
    if not check_wes_running(docker_host):
        logger.info("The sapporo-service for gh-trs is not running, skip stopping it")
        return
    logger.info("Stopping the sapporo-service for gh-trs")
    result = _run_docker(docker_host, ["kill", SAPPORO_SERVICE_NAME])
    if result.returncode != 0:
        raise GhTrsError(f"Failed to stop the sapporo-service: {result.stderr.strip()}")
    logger.debug("Stdout from docker: %s", result.stdout.strip())
    time.sleep(wait)


# ── run request ─────────────────────────────────────────────────────


class RunStatus(str, Enum):
    RUNNING = "Running"
    COMPLETE = "Complete"
    FAILED = "Failed"

    @classmethod
    def from_state(cls, state: str) -> "RunStatus":
        """Collapse a WES run state into Running, Complete or Failed."""
        if state in ("QUEUED", "INITIALIZING", "RUNNING", "PAUSED"):
            return cls.RUNNING
        if state == "COMPLETE":
            return cls.COMPLETE
        if state in ("EXECUTOR_ERROR", "SYSTEM_ERROR", "CANCELED", "CANCELING"):
            return cls.FAILED
        raise GhTrsError(f"Unknown run status: {state}")


def wf_url(workflow: Workflow) -> str:
    """Nextflow runs the attached primary file by name; other engines fetch it."""
    primary_wf = workflow.primary_wf()
    if workflow.language.type == LanguageType.NFL:
        return primary_wf.target
    return primary_wf.url


def wf_attachment(workflow: Workflow, test_case: Testing) -> str:
    attachments = []
    for f in workflow.files:
        if f.type == FileType.SECONDARY or workflow.language.type == LanguageType.NFL:
            attachments.append({"file_name": f.target, "file_url": f.url})
    for f in test_case.files:
        if f.type == TestFileType.OTHER:
            attachments.append({"file_name": f.target, "file_url": f.url})
    return json.dumps(attachments)


def _params(test_case: Testing, file_type: TestFileType, fetch: Callable[[str], str]) -> str:
    for f in test_case.files:
        if f.type == file_type:
            return fetch(f.url)
    return "{}"


def build_run_form(
    workflow: Workflow,
    test_case: Testing,
    fetch: Callable[[str], str] = fetch_raw_content,
) -> dict[str, str]:
    """Build the multipart fields of a WES run request for one test case."""
    language = workflow.language
    if language.type is None or language.version is None:
        raise ConfigError("workflow.language must be set before testing; run `gh-trs validate`")
    return {
        "workflow_type": language.type.value,
        "workflow_type_version": language.version,
        "workflow_url": wf_url(workflow),
        "workflow_engine_name": WORKFLOW_ENGINES[language.type],
        "workflow_params": _params(test_case, TestFileType.WF_PARAMS, fetch),
        "workflow_engine_parameters": _params(test_case, TestFileType.WF_ENGINE_PARAMS, fetch),
        "workflow_attachment": wf_attachment(workflow, test_case),
    }


# ── client ──────────────────────────────────────────────────────────


class WesClient:
    def __init__(
        self,
        location: str,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ) -> None:
        self.location = location.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout or request_timeout()

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.location}{path}"
        try:
            response = self.session.request(
                method, url, headers={"Accept": "application/json"}, timeout=self.timeout, **kwargs,
            )
        except requests.RequestException as e:
            raise TransportError(f"Failed to {method} {url}: {e}")
        if not response.ok:
            raise GhTrsError(f"Failed to {method} {url} with status: {response.status_code}")
        try:
            payload = response.json()
        except ValueError:
            raise GhTrsError(f"Failed to parse the response from {url}")
        if not isinstance(payload, dict):
            raise GhTrsError(f"Unexpected response from {url}")
        return payload

    def supported_wes_versions(self) -> list[str]:
        versions = self._request("GET", "/service-info").get("supported_wes_versions")
        if not isinstance(versions, list):
            raise GhTrsError("Failed to parse the response when getting service-info")
        return [str(v) for v in versions]

    def check_supported(self) -> None:
        if SUPPORTED_WES_VERSION not in self.supported_wes_versions():
            raise GhTrsError(f"gh-trs only supports WES version {SUPPORTED_WES_VERSION}")

    def post_run(self, form: dict[str, str]) -> str:
        files = {key: (None, value) for key, value in form.items()}
        run_id = self._request("POST", "/runs", files=files).get("run_id")
        if not run_id:
            raise GhTrsError("Failed to parse the response when posting run")
        return str(run_id)

    def get_run_status(self, run_id: str) -> RunStatus:
        state = self._request("GET", f"/runs/{run_id}/status").get("state")
        if not state:
            raise GhTrsError("Failed to parse the response when getting run status")
        return RunStatus.from_state(state)

    def get_run_log(self, run_id: str) -> dict:
        return self._request("GET", f"/runs/{run_id}")
