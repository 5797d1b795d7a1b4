from __future__ import annotations

import argparse
import logging
from typing import Optional

from .command_spec import CommandSpec, IsolationMethod
from .config import RunnerConfig, load_runner_config
from .errors import CommandFailedError, ConfigurationError, RootfsRunnerError
from .executor import Executor
from .logging_utils import configure_logging

logger = logging.getLogger(__name__)


def _parse_bind(value: str) -> tuple[str, Optional[str]]:
    src, sep, dst = value.partition(":")
    if not src:
        raise argparse.ArgumentTypeError(f"bad bind mount {value!r}, expected SRC[:DST]")
    return src, (dst if sep and dst else None)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="rootfs-run", description="Run a command inside a target root filesystem")
    p.add_argument("--config", default=None, help="Runner config (YAML)")
    p.add_argument("--log", default=None, help="Path to log file (overrides config)")
    p.add_argument("--arch", default="", help="Architecture of the root (empty: same as host)")
    p.add_argument("--root", default="", help="Target root directory")
    p.add_argument("--dir", default="", help="Working directory (method none only)")
    p.add_argument(
        "--method",
        default=IsolationMethod.DEFAULT.value,
        choices=[m.value for m in IsolationMethod],
        help="How to enter the root (default: from config)",
    )
    p.add_argument("--env", action="append", default=[], metavar="KEY=VALUE")
    p.add_argument("--bind", action="append", default=[], type=_parse_bind, metavar="SRC[:DST]")
    p.add_argument("--label", default=None, help="Prefix for output lines (default: command name)")
    p.add_argument("--dry-run", action="store_true")
    p.add_argument("--quiet", action="store_true", help="Do not log the command's own output")
    p.add_argument("cmdline", nargs=argparse.REMAINDER)
    return p


def main(argv: Optional[list[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    cmdline = list(args.cmdline)
    if cmdline and cmdline[0] == "--":
        cmdline = cmdline[1:]
    if not cmdline:
        p.error("no command given")

    try:
        cfg = load_runner_config(args.config) if args.config else RunnerConfig()
    except (ConfigurationError, OSError, ValueError) as e:
        p.exit(2, f"rootfs-run: {e}\n")

    configure_logging(log_path=args.log or cfg.log_path, child_output=not args.quiet)

    try:
        spec = CommandSpec(
            architecture=args.arch,
            working_dir=args.dir,
            chroot_path=args.root,
            isolation_method=IsolationMethod.parse(args.method),
            default_method=cfg.default_method,
            launcher=cfg.launcher,
        )
        for e in args.env:
            spec.add_env(e)
        for src, dst in args.bind:
            spec.add_bind_mount(src, dst)

        Executor.from_config(cfg, dry_run=bool(args.dry_run)).run(spec, args.label or cmdline[0], *cmdline)
    except ValueError as e:
        logger.error("%s", e)
        return 2
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 2
    except CommandFailedError as e:
        logger.error("%s", e)
        return e.returncode if e.returncode > 0 else 128 - e.returncode
    except RootfsRunnerError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
