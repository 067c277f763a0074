from __future__ import annotations

import os
import subprocess
from typing import IO, Dict, Optional

from aistack.core.errors import RuntimeStartError
from aistack.core.runtime.models import ModuleSpec


def merged_env(extra: Dict[str, str], base: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    env = dict(os.environ if base is None else base)
    env.update({str(k): str(v) for k, v in (extra or {}).items()})
    return env


def spawn_native(spec: ModuleSpec, log_file: IO[str]) -> "subprocess.Popen[bytes]":
    """Launch ``command + args`` with stdout and stderr redirected into ``log_file``."""
    if not spec.command:
        raise RuntimeStartError("native command is required", code="invalid_spec", module=spec.name)
    argv = list(spec.command) + list(spec.args)
    try:
        return subprocess.Popen(
            argv,
            stdout=log_file,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            env=merged_env(spec.env),
            cwd=spec.work_dir or None,
        )
    except OSError as e:
        raise RuntimeStartError(f"start native module {spec.name}: {e}", code="spawn_failed", module=spec.name) from e


def exit_error(returncode: int) -> str:
    if returncode < 0:
        return f"terminated by signal {-returncode}"
    return f"exit status {returncode}"
