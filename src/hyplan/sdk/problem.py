"""Problem loading and execution for the hyplan SDK."""

from __future__ import annotations

import importlib
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import ValidationError

from hyplan.core.coordinator.coordinator import Coordinator
from hyplan.core.domain.domain import Domain
from hyplan.core.planner.htn import HTNPlanner
from hyplan.core.state.store import StateStore
from hyplan.core.temporal.units import INFINITY
from hyplan.execution.dispatcher import RetryingDispatcher
from hyplan.execution.ledger import IntentLedger
from hyplan.execution.local import LocalExecutor
from hyplan.sdk.errors import ProblemValidationError
from hyplan.sdk.models import ProblemSpec
from hyplan.utils.telemetry import configure_telemetry

if TYPE_CHECKING:
    from hyplan.core.coordinator.coordinator import ExecutionReport
    from hyplan.core.coordinator.events import Listener
    from hyplan.core.planner.models import Plan


def load_domain(path: str) -> Domain:
    """Import ``module:attribute`` and return the :class:`Domain` it names.

    The attribute may be a domain instance or a zero-argument factory.

    Raises:
        ProblemValidationError: If the import fails or yields no domain.
    """
    module_name, _, attr = path.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ProblemValidationError(f"Cannot import domain module {module_name!r}: {exc}") from exc
    try:
        target: Any = getattr(module, attr)
    except AttributeError as exc:
        raise ProblemValidationError(f"Module {module_name!r} has no attribute {attr!r}") from exc
    if callable(target) and not isinstance(target, Domain):
        target = target()
    if not isinstance(target, Domain):
        raise ProblemValidationError(f"{path} is not a Domain (got {type(target).__name__})")
    return target


class ProblemLoader:
    """Load and validate a problem YAML file into a :class:`ProblemSpec`."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def load(self) -> ProblemSpec:
        """Read YAML, interpolate env vars, and validate.

        Environment variables in the form ``${VAR}`` or ``$VAR`` are expanded
        using :func:`os.path.expandvars` before YAML parsing.

        Raises:
            ProblemValidationError: On YAML parse errors or schema validation failures.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ProblemValidationError(f"Cannot read {self._path}: {exc}") from exc

        expanded = os.path.expandvars(raw)

        try:
            data: Any = yaml.safe_load(expanded)
        except yaml.YAMLError as exc:
            raise ProblemValidationError(f"YAML parse error: {exc}") from exc

        if not isinstance(data, dict):
            raise ProblemValidationError("Problem YAML must be a mapping")

        try:
            return ProblemSpec.model_validate(data)
        except ValidationError as exc:
            raise ProblemValidationError(str(exc)) from exc


class ProblemRunner:
    """Wire a validated :class:`ProblemSpec` to the local executor and run it."""

    def __init__(
        self,
        spec: ProblemSpec,
        *,
        domain: Domain | None = None,
        listeners: list[Listener] | None = None,
    ) -> None:
        self.spec = spec
        self.domain = domain if domain is not None else load_domain(spec.domain)
        self.listeners = listeners
        self.store = StateStore(spec.initial_state())
        self.ledger = IntentLedger()
        self.coordinator = self._build()

    @classmethod
    def from_yaml(cls, path: str | Path, **kwargs: Any) -> ProblemRunner:
        """Load a problem YAML and return a ready-to-run runner."""
        spec = ProblemLoader(Path(path)).load()
        return cls(spec, **kwargs)

    def validate(self) -> None:
        """Check the domain's static structure (see :meth:`Domain.validate`)."""
        self.domain.validate()

    def plan(self) -> Plan:
        """Plan without executing."""
        return self.coordinator.plan(self.domain, self.store.current, self.spec.agenda())

    async def run(self) -> ExecutionReport:
        """Plan, execute and report.

        Steps:
        1. Optionally configure telemetry.
        2. Decompose the agenda into a scheduled plan.
        3. Dispatch intents through the retrying local executor until the
           plan completes or fails.
        """
        if self.spec.telemetry and self.spec.telemetry.enabled:
            configure_telemetry(otlp_endpoint=self.spec.telemetry.otlp_endpoint)
        return await self.coordinator.run(self.plan())

    def _build(self) -> Coordinator:
        temporal = self.spec.temporal
        executor_cfg = self.spec.executor
        planner = HTNPlanner(
            max_depth=self.spec.planner.max_depth,
            full_recompute_threshold=temporal.full_recompute_threshold,
            horizon=temporal.horizon if temporal.horizon is not None else INFINITY,
        )
        executor = LocalExecutor(
            self.domain,
            self.store,
            self.ledger,
            concurrency=executor_cfg.concurrency,
            time_scale=executor_cfg.time_scale,
        )
        dispatcher = RetryingDispatcher(
            executor,
            attempts=executor_cfg.retry_attempts,
            backoff=executor_cfg.retry_backoff,
            timeout=executor_cfg.timeout,
        )
        return Coordinator(
            dispatcher,
            store=self.store,
            ledger=self.ledger,
            planner=planner,
            max_replans=self.spec.coordinator.max_replans,
            listeners=self.listeners,
        )
