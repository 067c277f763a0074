from __future__ import annotations

import datetime as dt
import logging
import os
import subprocess
import threading
import time
from dataclasses import dataclass, field
from typing import IO, Any, Callable, Dict, List, Optional

from aistack.core.config.models import RuntimeConfig
from aistack.core.errors import (
    AIStackError,
    ModeDisabledError,
    ModuleAlreadyRunningError,
    ProcessNotFoundError,
    RuntimeStartError,
    RuntimeStopError,
    StopTimeoutError,
)
from aistack.core.ops_log import OpsLogger
from aistack.core.runtime.container import ContainerRuntime, resolve_container_runtime
from aistack.core.runtime.health import container_health, native_health
from aistack.core.runtime.models import ExecutionMode, HealthState, ModuleSpec, ProcessState, Status
from aistack.core.runtime.native import exit_error, spawn_native


ContainerResolver = Callable[[str, bool], ContainerRuntime]

LIVE_STATES = (ProcessState.starting, ProcessState.running)


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass
class _Process:
    spec: ModuleSpec
    status: Status
    log_file: Optional[IO[str]] = None
    popen: Optional["subprocess.Popen[bytes]"] = None
    runtime: Optional[ContainerRuntime] = None
    stop_requested: threading.Event = field(default_factory=threading.Event)
    health_stop: threading.Event = field(default_factory=threading.Event)
    logs_stop: threading.Event = field(default_factory=threading.Event)
    exited: threading.Event = field(default_factory=threading.Event)
    threads: List[threading.Thread] = field(default_factory=list)


class RuntimeSupervisor:
    """
    Launches modules as native processes or containers and tracks them.

    The name -> process table is guarded by one lock, held only for table
    reads and writes. Each module owns its background threads (exit-wait,
    container log-follow, health monitor), each cancelled through its own
    ``threading.Event``. Post-start failures land in ``Status.last_error``.
    """

    def __init__(
        self,
        config: RuntimeConfig,
        *,
        ops: Optional[OpsLogger] = None,
        logger: Optional[logging.Logger] = None,
        container_resolver: ContainerResolver = resolve_container_runtime,
    ):
        self.config = config
        self.ops = ops
        self.logger = logger or logging.getLogger("aistack.runtime")
        self._container_resolver = container_resolver
        self._lock = threading.Lock()
        self._procs: Dict[str, _Process] = {}

    # ---- public API ----
    def start(self, spec: ModuleSpec) -> Status:
        name = str(spec.name or "").strip()
        if not name:
            raise RuntimeStartError("module name is required", code="invalid_spec")
        mode = self._resolve_mode(spec)

        status = Status(name=name, mode=mode, state=ProcessState.starting, started_at=_now())
        proc = _Process(spec=spec, status=status)
        with self._lock:
            existing = self._procs.get(name)
            if existing is not None and existing.status.state in LIVE_STATES:
                raise ModuleAlreadyRunningError(name)
            self._procs[name] = proc

        try:
            log_file = self._open_log(name)
            proc.log_file = log_file
            proc.status.log_path = log_file.name
            if mode == ExecutionMode.native:
                self._start_native(proc, log_file)
            else:
                self._start_container(proc, log_file)
        except AIStackError as e:
            self._abort_start(proc, existing, e)
            raise
        except OSError as e:
            self._abort_start(proc, existing, e)
            raise RuntimeStartError(f"start module {name}: {e}", code="start_failed", module=name) from e

        self._spawn(proc, f"health-{name}", self._health_loop, proc)
        self.logger.info(f"Started module {name} ({mode.value}) pid={proc.status.pid} container={proc.status.container_id}")
        self._ops("runtime.start", "ok", {"module": name, "mode": mode.value, "pid": proc.status.pid, "container_id": proc.status.container_id})
        return self.status(name)

    def stop(self, name: str, timeout: Optional[float] = None) -> Status:
        with self._lock:
            proc = self._procs.get(name)
        if proc is None:
            raise ProcessNotFoundError(name)

        timeout_s = float(timeout if timeout is not None else self.config.stop_timeout_seconds)
        with self._lock:
            state = proc.status.state
            popen, runtime = proc.popen, proc.runtime
        if state not in LIVE_STATES:
            return self.status(name)
        if state == ProcessState.starting:
            raise RuntimeStopError(f"module {name!r} is still starting", code="module_starting", module=name)

        proc.stop_requested.set()
        try:
            if popen is not None:
                self._stop_native(proc, popen, timeout_s)
            elif runtime is not None:
                self._stop_container(proc, runtime)
            else:
                raise RuntimeStopError(f"module {name!r} has no process handle", code="no_handle", module=name)
        finally:
            proc.health_stop.set()

        self.logger.info(f"Stopped module {name}")
        self._ops("runtime.stop", "ok", {"module": name})
        return self.status(name)

    def status(self, name: str) -> Status:
        with self._lock:
            proc = self._procs.get(name)
            if proc is None:
                raise ProcessNotFoundError(name)
            return proc.status.model_copy()

    def list(self) -> List[Status]:
        with self._lock:
            return [self._procs[n].status.model_copy() for n in sorted(self._procs)]

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop every live module; failures are logged, not raised."""
        with self._lock:
            names = [n for n, p in self._procs.items() if p.status.state in LIVE_STATES]
        for name in sorted(names):
            try:
                self.stop(name, timeout=timeout)
            except AIStackError as e:
                self.logger.warning(f"Shutdown: failed to stop {name}: {e}")
                self._ops("runtime.shutdown", "stop_failed", {"module": name, "error": str(e)})

    # ---- start helpers ----
    def _resolve_mode(self, spec: ModuleSpec) -> ExecutionMode:
        mode = spec.mode
        if mode is None:
            if not self.config.default_mode:
                raise RuntimeStartError("execution mode is required", code="invalid_spec", module=spec.name)
            mode = ExecutionMode(self.config.default_mode)
        if mode == ExecutionMode.container and not self.config.docker_enabled:
            raise ModeDisabledError("container mode disabled", module=spec.name)
        if mode == ExecutionMode.native and not self.config.native_enabled:
            raise ModeDisabledError("native mode disabled", module=spec.name)
        return mode

    def _open_log(self, name: str) -> IO[str]:
        d = os.path.join(self.config.log_dir, "logs", name)
        os.makedirs(d, exist_ok=True)
        now = time.time()
        stamp = time.strftime("%Y%m%d-%H%M%S", time.gmtime(now)) + f".{int(now * 1_000_000) % 1_000_000:06d}"
        path = os.path.join(d, stamp + ".log")
        n = 1
        while os.path.exists(path):
            path = os.path.join(d, f"{stamp}-{n}.log")
            n += 1
        return open(path, "a", encoding="utf-8")

    def _start_native(self, proc: _Process, log_file: IO[str]) -> None:
        popen = spawn_native(proc.spec, log_file)
        with self._lock:
            proc.popen = popen
            proc.status.pid = popen.pid
            proc.status.state = ProcessState.running
        self._spawn(proc, f"wait-{proc.status.name}", self._wait_native, proc, popen)

    def _start_container(self, proc: _Process, log_file: IO[str]) -> None:
        spec = proc.spec
        if not spec.image:
            raise RuntimeStartError("container image is required", code="invalid_spec", module=spec.name)
        runtime = self._container_resolver(spec.container_runtime, bool(self.config.docker_enabled))
        container_name = spec.container_name or f"aistack-{spec.name}-{int(time.time())}"
        container_id = runtime.run_detached(spec, container_name)
        with self._lock:
            proc.runtime = runtime
            proc.status.container_id = container_id
            proc.status.state = ProcessState.running
        self._spawn(proc, f"logs-{spec.name}", self._follow_logs, proc, runtime, log_file)
        self._spawn(proc, f"wait-{spec.name}", self._wait_container, proc, runtime)

    def _abort_start(self, proc: _Process, previous: Optional[_Process], err: BaseException) -> None:
        with self._lock:
            if self._procs.get(proc.status.name) is proc:
                if previous is not None:
                    self._procs[proc.status.name] = previous
                else:
                    del self._procs[proc.status.name]
        if proc.log_file is not None:
            proc.log_file.close()
        self.logger.error(f"Failed to start module {proc.status.name}: {err}")
        self._ops("runtime.start", "failed", {"module": proc.status.name, "error": str(err)})

    def _spawn(self, proc: _Process, name: str, target: Callable[..., Any], *args: Any) -> None:
        t = threading.Thread(target=target, args=args, name=name, daemon=True)
        proc.threads.append(t)
        t.start()

    # ---- background tasks ----
    def _wait_native(self, proc: _Process, popen: "subprocess.Popen[bytes]") -> None:
        rc = popen.wait()
        if proc.stop_requested.is_set() or rc == 0:
            self._finish(proc, ProcessState.stopped, "")
        else:
            self._finish(proc, ProcessState.failed, exit_error(rc))

    def _wait_container(self, proc: _Process, runtime: ContainerRuntime) -> None:
        try:
            code = runtime.wait(proc.status.container_id)
        except AIStackError as e:
            if proc.stop_requested.is_set():
                self._finish(proc, ProcessState.stopped, "")
            else:
                self._finish(proc, ProcessState.failed, str(e))
            return
        if proc.stop_requested.is_set() or code == 0:
            self._finish(proc, ProcessState.stopped, "")
        else:
            self._finish(proc, ProcessState.failed, exit_error(code))

    def _follow_logs(self, proc: _Process, runtime: ContainerRuntime, log_file: IO[str]) -> None:
        try:
            runtime.follow_logs(proc.status.container_id, log_file, proc.logs_stop)
        except AIStackError as e:
            self.logger.warning(f"Log stream for {proc.status.name} ended: {e}")

    def _health_loop(self, proc: _Process) -> None:
        hc = proc.spec.health_check
        interval = hc.effective_interval()
        timeout = hc.effective_timeout()
        while not proc.health_stop.wait(interval):
            with self._lock:
                state = proc.status.state
            if proc.status.mode == ExecutionMode.native:
                health = native_health(state, hc.command, timeout)
            elif proc.runtime is not None:
                health = container_health(proc.runtime, proc.status.container_id, hc.command, timeout)
            else:
                health = HealthState.unknown
            with self._lock:
                if proc.health_stop.is_set():
                    return
                proc.status.health = health

    def _finish(self, proc: _Process, state: ProcessState, error: str) -> None:
        with self._lock:
            if proc.status.state in LIVE_STATES:
                proc.status.state = state
                proc.status.last_error = error
                proc.status.health = HealthState.unhealthy
                proc.status.finished_at = _now()
            final = proc.status.state
        proc.health_stop.set()
        proc.logs_stop.set()
        for t in proc.threads:
            if t is not threading.current_thread() and t.name.startswith("logs-"):
                t.join(timeout=5)
        if proc.log_file is not None:
            proc.log_file.close()
        proc.exited.set()
        if final == ProcessState.failed:
            self.logger.warning(f"Module {proc.status.name} failed: {error}")
        self._ops("runtime.exit", final.value, {"module": proc.status.name, "error": error})

    # ---- stop helpers ----
    def _stop_native(self, proc: _Process, popen: "subprocess.Popen[bytes]", timeout_s: float) -> None:
        if popen.poll() is None:
            popen.terminate()
        if proc.exited.wait(timeout_s):
            return
        popen.kill()
        proc.exited.wait(5)
        self._ops("runtime.stop", "timeout", {"module": proc.status.name, "timeout_seconds": timeout_s})
        raise StopTimeoutError(proc.status.name, timeout_s)

    def _stop_container(self, proc: _Process, runtime: ContainerRuntime) -> None:
        runtime.stop(proc.status.container_id, self.config.container_stop_grace_seconds)
        with self._lock:
            if proc.status.state in LIVE_STATES:
                proc.status.state = ProcessState.stopped
                proc.status.health = HealthState.unhealthy
                proc.status.finished_at = _now()

    def _ops(self, event: str, outcome: str, details: Dict[str, Any]) -> None:
        if self.ops is None:
            return
        self.ops.log(trace_id="runtime", event=event, outcome=outcome, details=dict(details))
