from __future__ import annotations

import argparse
import json
import sys
from typing import Any, List, Optional

from aistack.core.config import load_config
from aistack.core.config.models import AppConfig
from aistack.core.control import ControlLayer
from aistack.core.errors import AIStackError
from aistack.core.hardware.detector import HardwareDetector, NativeDetector, StaticDetector
from aistack.core.hardware.normalize import normalize_profile
from aistack.core.logger import setup_logging
from aistack.core.modules.registry import Registry, load_registry_from_dir
from aistack.core.ops_log import OpsLogger
from aistack.core.policy.loader import load_policy_engine
from aistack.core.state.manager import StateManager


def _print(obj: Any) -> None:
    print(json.dumps(obj, indent=2, sort_keys=True, default=str))


def _detector(cfg: AppConfig, args: argparse.Namespace) -> HardwareDetector:
    if getattr(args, "profile", None):
        return StaticDetector.from_file(args.profile)
    return NativeDetector(enable_nvml=cfg.control.enable_nvml)


def _registry(cfg: AppConfig) -> Registry:
    return load_registry_from_dir(cfg.control.modules_dir) if cfg.control.modules_dir else Registry()


def cmd_system_detect(cfg: AppConfig, args: argparse.Namespace, ops: OpsLogger, logger) -> int:
    _print(normalize_profile(_detector(cfg, args).detect()).model_dump())
    return 0


def cmd_policy_evaluate(cfg: AppConfig, args: argparse.Namespace, ops: OpsLogger, logger) -> int:
    engine = load_policy_engine(cfg.control.policy_file, ops=ops, logger=logger)
    _print(engine.evaluate(_detector(cfg, args).detect()).model_dump())
    return 0


def cmd_module_list(cfg: AppConfig, args: argparse.Namespace, ops: OpsLogger, logger) -> int:
    registry = _registry(cfg)
    _print({name: [str(r.version) for r in records] for name, records in registry.all().items()})
    return 0


def cmd_module_plan(cfg: AppConfig, args: argparse.Namespace, ops: OpsLogger, logger) -> int:
    control = ControlLayer(cfg, detector=_detector(cfg, args), ops=ops, logger=logger)
    control.start()
    try:
        plan = control.plan_install(args.targets)
        _print({"order": plan.order, "versions": plan.versions(), "unmet_requirements": control.unmet_requirements(plan)})
    finally:
        control.stop()
    return 0


def cmd_state_show(cfg: AppConfig, args: argparse.Namespace, ops: OpsLogger, logger) -> int:
    state = StateManager(cfg.control.data_dir, ops=ops, logger=logger)
    _print({name: rec.model_dump(mode="json") for name, rec in state.get_state().modules.items()})
    return 0


def cmd_state_snapshots(cfg: AppConfig, args: argparse.Namespace, ops: OpsLogger, logger) -> int:
    state = StateManager(cfg.control.data_dir, ops=ops, logger=logger)
    _print([{"id": s.id, "reason": s.reason, "created_at": s.created_at.isoformat()} for s in state.list_snapshots()])
    return 0


def cmd_state_reconcile(cfg: AppConfig, args: argparse.Namespace, ops: OpsLogger, logger) -> int:
    state = StateManager(cfg.control.data_dir, ops=ops, logger=logger)
    _print([c.model_dump() for c in state.reconcile()])
    return 0


def cmd_state_rollback(cfg: AppConfig, args: argparse.Namespace, ops: OpsLogger, logger) -> int:
    state = StateManager(cfg.control.data_dir, ops=ops, logger=logger)
    snap = state.rollback_to(args.id) if args.id else state.rollback_last()
    _print({"restored": snap.id, "reason": snap.reason})
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="aistack", description="Local AI stack control plane")
    ap.add_argument("--config", default=None, help="Path to config YAML.")
    sub = ap.add_subparsers(dest="group", required=True)

    system = sub.add_parser("system", help="System management").add_subparsers(dest="action", required=True)
    p = system.add_parser("detect", help="Detect hardware capabilities")
    p.add_argument("--profile", default=None, help="Read a static hardware profile YAML instead of probing.")
    p.set_defaults(func=cmd_system_detect)

    policy = sub.add_parser("policy", help="Hardware policies").add_subparsers(dest="action", required=True)
    p = policy.add_parser("evaluate", help="Show the capability set for this machine")
    p.add_argument("--profile", default=None, help="Read a static hardware profile YAML instead of probing.")
    p.set_defaults(func=cmd_policy_evaluate)

    module = sub.add_parser("module", help="Manage software modules").add_subparsers(dest="action", required=True)
    module.add_parser("list", help="List all available modules").set_defaults(func=cmd_module_list)
    p = module.add_parser("plan", help="Resolve an install plan")
    p.add_argument("targets", nargs="+", help="Targets such as 'ollama' or 'ollama@>=0.3.0'.")
    p.add_argument("--profile", default=None, help="Read a static hardware profile YAML instead of probing.")
    p.set_defaults(func=cmd_module_plan)

    state = sub.add_parser("state", help="Module lifecycle state").add_subparsers(dest="action", required=True)
    state.add_parser("show", help="Show recorded module states").set_defaults(func=cmd_state_show)
    state.add_parser("snapshots", help="List rollback snapshots").set_defaults(func=cmd_state_snapshots)
    state.add_parser("reconcile", help="Repair invalid state entries").set_defaults(func=cmd_state_reconcile)
    p = state.add_parser("rollback", help="Restore a snapshot (latest by default)")
    p.add_argument("--id", default=None, help="Snapshot id.")
    p.set_defaults(func=cmd_state_rollback)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = load_config(args.config)
    except AIStackError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    logger = setup_logging(cfg.logging.log_dir, cfg.logging.level, console=cfg.logging.console)
    ops = OpsLogger(path=cfg.logging.ops_log)
    try:
        return int(args.func(cfg, args, ops, logger))
    except AIStackError as e:
        logger.error(f"{args.group} {args.action} failed: {e.code}: {e}")
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
