from __future__ import annotations

import shutil
import subprocess
import threading
from abc import ABC
from typing import Callable, IO, List, Optional, Sequence

from aistack.core.errors import ContainerRuntimeError, ModeDisabledError, RuntimeStopError
from aistack.core.runtime.models import ModuleSpec


HEALTH_FORMAT = "{{if .State.Health}}{{.State.Health.Status}}{{else}}{{.State.Status}}{{end}}"
DEFAULT_STOP_GRACE_SECONDS = 10


def _combined(cp: "subprocess.CompletedProcess[str]") -> str:
    return ((cp.stdout or "") + (cp.stderr or "")).strip()


class ContainerRuntime(ABC):
    """
    A docker-compatible CLI. Subclasses only differ in the binary they drive;
    the supervisor picks one at start time via ``resolve_container_runtime``.
    """

    name: str = ""

    def __init__(self, binary: Optional[str] = None):
        self.binary = binary or self.name

    def _cmd(self, *args: str) -> List[str]:
        return [self.binary, *args]

    def _run(self, args: Sequence[str], *, timeout: Optional[float] = None) -> "subprocess.CompletedProcess[str]":
        try:
            return subprocess.run(list(args), capture_output=True, text=True, timeout=timeout)
        except OSError as e:
            raise ContainerRuntimeError(f"{self.name}: {e}", binary=self.binary) from e

    def run_args(self, spec: ModuleSpec, container_name: str) -> List[str]:
        args = ["run", "-d", "--rm", "--name", container_name]
        for k in sorted(spec.env):
            args += ["-e", f"{k}={spec.env[k]}"]
        if spec.work_dir:
            args += ["-w", spec.work_dir]
        args.append(spec.image)
        args += list(spec.command)
        args += list(spec.args)
        return self._cmd(*args)

    def run_detached(self, spec: ModuleSpec, container_name: str) -> str:
        """Start the container detached; returns the container id."""
        cp = self._run(self.run_args(spec, container_name))
        out = _combined(cp)
        if cp.returncode != 0:
            raise ContainerRuntimeError(f"{self.name} run failed: {out}", module=spec.name, exit_code=cp.returncode)
        lines = [ln.strip() for ln in (cp.stdout or "").splitlines() if ln.strip()]
        if not lines:
            raise ContainerRuntimeError(f"{self.name} run returned no container id", module=spec.name)
        return lines[-1]

    def follow_logs(self, container_id: str, out: IO[str], stop: threading.Event) -> None:
        """Stream container output into ``out`` until the stream ends or ``stop`` is set."""
        try:
            proc = subprocess.Popen(self._cmd("logs", "-f", container_id), stdout=out, stderr=subprocess.STDOUT)
        except OSError as e:
            raise ContainerRuntimeError(f"{self.name} logs: {e}", container_id=container_id) from e
        try:
            while not stop.wait(0.2):
                if proc.poll() is not None:
                    return
        finally:
            if proc.poll() is None:
                proc.terminate()
                try:
                    proc.wait(timeout=2)
                except subprocess.TimeoutExpired:
                    proc.kill()
                    proc.wait()

    def wait(self, container_id: str) -> int:
        """Block until the container exits; returns its exit code."""
        cp = self._run(self._cmd("wait", container_id))
        if cp.returncode != 0:
            raise ContainerRuntimeError(f"{self.name} wait failed: {_combined(cp)}", container_id=container_id)
        text = (cp.stdout or "").strip().splitlines()
        try:
            return int(text[-1].strip())
        except (IndexError, ValueError) as e:
            raise ContainerRuntimeError(f"{self.name} wait: unexpected output {cp.stdout!r}", container_id=container_id) from e

    def stop(self, container_id: str, grace_seconds: int = DEFAULT_STOP_GRACE_SECONDS) -> None:
        cp = self._run(self._cmd("stop", "-t", str(int(grace_seconds)), container_id))
        if cp.returncode != 0:
            raise RuntimeStopError(
                f"{self.name} stop failed: {_combined(cp)}",
                code="container_stop_failed",
                container_id=container_id,
            )

    def inspect_status(self, container_id: str, timeout: float) -> str:
        """Health status if the image defines a healthcheck, else the container state. "" on failure."""
        try:
            cp = self._run(self._cmd("inspect", "--format", HEALTH_FORMAT, container_id), timeout=timeout)
        except subprocess.TimeoutExpired:
            return ""
        if cp.returncode != 0:
            return ""
        return (cp.stdout or "").strip().lower()

    def exec(self, container_id: str, command: Sequence[str], timeout: float) -> bool:
        try:
            cp = self._run(self._cmd("exec", container_id, *command), timeout=timeout)
        except subprocess.TimeoutExpired:
            return False
        return cp.returncode == 0


class DockerRuntime(ContainerRuntime):
    name = "docker"


class PodmanRuntime(ContainerRuntime):
    name = "podman"


RUNTIMES = {
    DockerRuntime.name: DockerRuntime,
    PodmanRuntime.name: PodmanRuntime,
}


def resolve_container_runtime(
    preferred: str,
    docker_enabled: bool,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> ContainerRuntime:
    if not docker_enabled:
        raise ModeDisabledError("container runtime disabled")

    pref = str(preferred or "").strip().lower()
    if pref:
        cls = RUNTIMES.get(pref)
        if cls is None:
            raise ContainerRuntimeError(f"unsupported container runtime {preferred!r}")
        path = which(pref)
        if not path:
            raise ContainerRuntimeError(f"container runtime {pref} not found")
        return cls(path)

    for name in ("docker", "podman"):
        path = which(name)
        if path:
            return RUNTIMES[name](path)
    raise ContainerRuntimeError("no container runtime found")
