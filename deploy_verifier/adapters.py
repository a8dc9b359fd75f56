"""
Adapters for the tools a verification run drives: git, Maven and HTTP.
"""
import logging
import shlex
import shutil
import subprocess
import tempfile
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import requests

from deploy_verifier.config import settings
from deploy_verifier.errors import BuildFailure, SetupError

logger = logging.getLogger(__name__)


class GitCloner:
    """Clones a repository into a temporary working directory."""

    def __init__(self, repository_url: str, git_executable: Optional[str] = None, runner: Callable = subprocess.run):
        self.repository_url = repository_url
        self.git_executable = git_executable or settings.GIT_EXECUTABLE
        self.runner = runner
        self.work_tree: Optional[Path] = None

    def clone(self) -> Path:
        target = Path(tempfile.mkdtemp(prefix="deploy-verifier-"))
        cmd = [self.git_executable, "clone", "--depth", "1", self.repository_url, str(target)]
        logger.info(f"Cloning {self.repository_url} into {target}")
        try:
            result = self.runner(cmd, capture_output=True, text=True, timeout=300)
        except (OSError, subprocess.TimeoutExpired) as e:
            shutil.rmtree(target, ignore_errors=True)
            logger.error(f"❌ Failed to clone {self.repository_url}: {e}")
            raise SetupError(f"Cannot clone {self.repository_url}: {e}") from e

        if result.returncode != 0:
            shutil.rmtree(target, ignore_errors=True)
            logger.error(f"❌ Failed to clone {self.repository_url}: {result.stderr}")
            raise SetupError(f"git clone {self.repository_url} exited with {result.returncode}: {result.stderr}")

        self.work_tree = target
        logger.info(f"✅ Cloned {self.repository_url}")
        return target

    def remove(self) -> None:
        if self.work_tree is not None:
            shutil.rmtree(self.work_tree, ignore_errors=True)
            logger.info(f"Removed clone {self.work_tree}")
            self.work_tree = None


def build_command(pom_path: Union[str, Path], goals: str, profiles: str = "",
                  executable: Optional[str] = None) -> List[str]:
    """Maven command line for goals such as 'fabric8:deploy -DskipTests'."""
    cmd = [executable or settings.MAVEN_EXECUTABLE, "-B", "-f", str(pom_path)]
    cmd.extend(shlex.split(goals))
    if profiles:
        cmd.extend(["-P", profiles])
    return cmd


def run_build(project_dir: Union[str, Path], goals: str, profiles: str = "",
              executable: Optional[str] = None, runner: Callable = subprocess.run,
              timeout: Optional[int] = None) -> int:
    """Run Maven against the project's pom.xml and return its exit status."""
    cmd = build_command(Path(project_dir) / "pom.xml", goals, profiles, executable)
    logger.info(f"🚀 Running build: {' '.join(cmd)}")
    try:
        result = runner(
            cmd,
            cwd=str(project_dir),
            capture_output=True,
            text=True,
            timeout=timeout or settings.BUILD_TIMEOUT_SECS,
        )
    except subprocess.TimeoutExpired as e:
        logger.error(f"❌ Build timed out after {e.timeout}s")
        return -1
    except OSError as e:
        logger.error(f"❌ Could not start build: {e}")
        return -1

    for line in (result.stdout or "").splitlines():
        logger.info(line)
    if result.returncode != 0:
        for line in (result.stderr or "").splitlines():
            logger.error(line)
    return result.returncode


class MavenBuild:
    """Build trigger that treats a non-zero exit as fatal."""

    def __init__(self, executable: Optional[str] = None, runner: Callable = subprocess.run):
        self.executable = executable
        self.runner = runner

    def run(self, project_dir: Union[str, Path], goals: str, profiles: str = "", app: Optional[str] = None) -> None:
        exit_code = run_build(project_dir, goals, profiles, executable=self.executable, runner=self.runner)
        if exit_code != 0:
            raise BuildFailure(exit_code, goals, profiles, app)
        logger.info(f"✅ Build '{goals}' succeeded")


class HttpRequestType(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


def make_http_request(request_type: Union[HttpRequestType, str], url: str,
                      params: Optional[Union[str, Dict[str, Any]]] = None,
                      query: Optional[Dict[str, str]] = None,
                      session: Optional[requests.Session] = None) -> requests.Response:
    """
    Make an HTTP request against the deployed application.

    Args:
        request_type: GET, POST, PUT or DELETE
        url: Target URL
        params: JSON body for POST/PUT/DELETE; defaults to an empty object
        query: Optional query string parameters
        session: Optional requests session

    Returns:
        The response
    """
    http = session or requests
    method = str(getattr(request_type, "value", request_type)).upper()
    if method not in HttpRequestType.__members__:
        logger.error(f"No valid HTTP request type specified ({method}), using GET instead.")
        method = HttpRequestType.GET.value

    kwargs: Dict[str, Any] = {"params": query, "timeout": settings.REQUEST_TIMEOUT_SECS}
    if method != HttpRequestType.GET.value:
        body = params if params is not None else "{}"
        if isinstance(body, str):
            kwargs["data"] = body
            kwargs["headers"] = {"Content-Type": "application/json; charset=utf-8"}
        else:
            kwargs["json"] = body

    response = http.request(method, url, **kwargs)
    logger.info(f"[{method}] {response.url or url} {response.status_code}")
    return response
