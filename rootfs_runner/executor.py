"""Run one command inside (or against) a target root.

Setup order is: resolve method, inject emulator, deny services, attach bind
mounts (chroot only), spawn. Every acquired resource registers its release
on an ExitStack, so teardown runs in reverse order of acquisition on every
exit path and a failing release never stops the others.
"""

from __future__ import annotations

import logging
import subprocess
from contextlib import ExitStack
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from .command_spec import CommandSpec, IsolationMethod
from .errors import CommandFailedError, SetupError, SpawnError, TeardownWarning
from .lib.command import fmt_argv
from .lib.emulator import EmulatorInjector
from .lib.mounts import UNMOUNT_REVERSE, BindMountSet
from .lib.output import LineBufferedSink
from .lib.services import ServiceGate

logger = logging.getLogger(__name__)

READ_CHUNK = 64 * 1024


class ExecState(Enum):
    IDLE = "idle"
    METHOD_RESOLVED = "method_resolved"
    EMULATOR_READY = "emulator_ready"
    SERVICES_DENIED = "services_denied"
    MOUNTS_ATTACHED = "mounts_attached"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RunResult:
    label: str
    argv: List[str]
    method: IsolationMethod
    returncode: Optional[int] = None
    states: List[ExecState] = field(default_factory=lambda: [ExecState.IDLE])
    warnings: List[TeardownWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def state(self) -> ExecState:
        return self.states[-1]


class Executor:
    def __init__(
        self,
        *,
        unmount_order: str = UNMOUNT_REVERSE,
        dry_run: bool = False,
        emit: Optional[Callable[[str, str], None]] = None,
    ) -> None:
        self.unmount_order = unmount_order
        self.dry_run = dry_run
        self.emit = emit

    @classmethod
    def from_config(cls, config, *, dry_run: bool = False) -> "Executor":
        return cls(unmount_order=config.unmount_order, dry_run=dry_run)

    def run(self, spec: CommandSpec, label: str, *cmdline: str) -> RunResult:
        """Run cmdline as described by spec, streaming output under label.

        Returns the RunResult on success. Raises ConfigurationError before
        touching anything, SetupError/SpawnError if the command never ran,
        and CommandFailedError (carrying the result) on a non-zero exit.
        """

        if not cmdline:
            raise ValueError("cmdline must not be empty")

        method = spec.resolve_method()
        argv = spec.build_argv(cmdline, method)
        env = spec.build_env(method)
        injector = EmulatorInjector(spec.architecture, spec.chroot_path, dry_run=self.dry_run)

        result = RunResult(label=label, argv=argv, method=method)
        self._enter(result, ExecState.METHOD_RESOLVED)

        try:
            with ExitStack() as stack:
                self._prepare(stack, spec, method, injector, result)
                self._enter(result, ExecState.RUNNING)
                cwd = spec.working_dir if method is IsolationMethod.NONE else ""
                result.returncode = self._spawn(argv, env, cwd or None, label)
        except BaseException:
            self._enter(result, ExecState.FAILED)
            raise

        if result.warnings:
            logger.warning("%s: %d teardown warning(s)", label, len(result.warnings))

        if result.returncode != 0:
            self._enter(result, ExecState.FAILED)
            raise CommandFailedError(argv, result.returncode, result)

        self._enter(result, ExecState.COMPLETED)
        return result

    def _prepare(
        self,
        stack: ExitStack,
        spec: CommandSpec,
        method: IsolationMethod,
        injector: EmulatorInjector,
        result: RunResult,
    ) -> None:
        target = injector.binding.target_path if injector.binding else ""
        stack.callback(self._release, result, "remove-emulator", target, injector.cleanup)
        try:
            injector.setup()
        except OSError as e:
            # Non-fatal; the run continues without the copied emulator.
            self._record(result, "inject-emulator", target, e)
        self._enter(result, ExecState.EMULATOR_READY)

        if method is not IsolationMethod.NONE:
            gate = ServiceGate(spec.chroot_path, dry_run=self.dry_run)
            stack.callback(self._release, result, "allow-services", spec.chroot_path, gate.allow)
            try:
                gate.deny()
            except OSError as e:
                raise SetupError(f"Unable to disable services in {spec.chroot_path}: {e}") from e
            self._enter(result, ExecState.SERVICES_DENIED)

        # The namespace launcher gets binds as --bind flags instead.
        if method is IsolationMethod.CHROOT:
            mounts = BindMountSet(
                spec.chroot_path,
                spec.bind_mounts,
                unmount_order=self.unmount_order,
                dry_run=self.dry_run,
            )
            stack.callback(self._detach, result, mounts)
            result.warnings.extend(mounts.attach())
            self._enter(result, ExecState.MOUNTS_ATTACHED)

    def _spawn(self, argv: Sequence[str], env: Optional[Dict[str, str]], cwd: Optional[str], label: str) -> int:
        logger.info("CMD %s", fmt_argv(argv))
        if self.dry_run:
            return 0

        sink = LineBufferedSink(label, self.emit)
        try:
            proc = subprocess.Popen(
                list(argv),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                env=env,
                cwd=cwd,
            )
        except OSError as e:
            raise SpawnError(argv, e) from e

        try:
            with proc:
                stdout = proc.stdout
                if stdout is None:
                    raise RuntimeError("child stdout is not a pipe")
                for chunk in iter(lambda: stdout.read1(READ_CHUNK), b""):
                    sink.write(chunk)
                return proc.wait()
        finally:
            sink.flush()

    def _detach(self, result: RunResult, mounts: BindMountSet) -> None:
        try:
            result.warnings.extend(mounts.detach())
        except Exception as e:
            self._record(result, "umount", mounts.root, e)

    def _release(self, result: RunResult, step: str, target: str, fn: Callable[[], None]) -> None:
        try:
            fn()
        except Exception as e:
            self._record(result, step, target, e)

    @staticmethod
    def _record(result: RunResult, step: str, target: str, e: Exception) -> None:
        w = TeardownWarning(step=step, target=target, error=str(e))
        logger.warning("Non-fatal: %s", w)
        result.warnings.append(w)

    @staticmethod
    def _enter(result: RunResult, state: ExecState) -> None:
        logger.debug("[%s] %s -> %s", result.label, result.state.value, state.value)
        result.states.append(state)


def run_in_root(spec: CommandSpec, label: str, *cmdline: str, config=None, dry_run: bool = False) -> RunResult:
    """Convenience wrapper: build an Executor (from config if given) and run once."""

    executor = Executor.from_config(config, dry_run=dry_run) if config is not None else Executor(dry_run=dry_run)
    return executor.run(spec, label, *cmdline)
