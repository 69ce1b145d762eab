"""Incremental board solid builder.

The build is a fixed sequence of phases. ``BuildState`` is an explicit
``(phase, cursor)`` value and :func:`advance` is the transition function:
one call processes one record, or moves to the next phase when the current
one is exhausted. :class:`BoardSolidBuilder` runs ``advance`` in chunks via
``step(n)`` so a host can interleave other work between chunks.
:func:`build_board_solids` runs the same transitions in one go.

Phase order:
    initializing -> pads -> copper pours -> plated holes -> holes
    -> cutouts -> traces -> vias -> finalizing -> done
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from pcb_solids.backends import GeometryBackend, SolidArena, backend_from_config
from pcb_solids.colorize import colorize_work
from pcb_solids.context import BoardWork, BuildContext
from pcb_solids.contracts import (
    BuildConfig,
    BuildResult,
    CircuitElements,
    ColoredSolid,
    Element,
    SkippedElement,
    partition_elements,
)
from pcb_solids.copper import process_copper_pour, process_pad, process_trace
from pcb_solids.cutouts import flush_cutouts, process_cutout
from pcb_solids.drilling import process_hole, process_plated_hole, process_via
from pcb_solids.errors import (
    BuilderBusyError,
    BuilderStateError,
    DegenerateGeometryError,
    UnsupportedShapeError,
)
from pcb_solids.preview import build_preview_solids
from pcb_solids.shell import BoardDefinition, build_board_shell, resolve_board_definition

logger = logging.getLogger(__name__)

# Record kinds whose unknown shape tags abort the build.
FATAL_UNSUPPORTED_KINDS = frozenset({"pcb_plated_hole"})


class BuildPhase(str, Enum):
    INITIALIZING = "initializing"
    PROCESSING_PADS = "processing_pads"
    PROCESSING_COPPER_POURS = "processing_copper_pours"
    PROCESSING_PLATED_HOLES = "processing_plated_holes"
    PROCESSING_HOLES = "processing_holes"
    PROCESSING_CUTOUTS = "processing_cutouts"
    PROCESSING_TRACES = "processing_traces"
    PROCESSING_VIAS = "processing_vias"
    FINALIZING = "finalizing"
    DONE = "done"


PHASE_ORDER: Tuple[BuildPhase, ...] = tuple(BuildPhase)

Handler = Callable[[BoardWork, Any, BuildContext], BoardWork]

# phase -> (CircuitElements attribute, handler)
_ELEMENT_PHASES: Dict[BuildPhase, Tuple[str, Handler]] = {
    BuildPhase.PROCESSING_PADS: ("smt_pads", process_pad),
    BuildPhase.PROCESSING_COPPER_POURS: ("copper_pours", process_copper_pour),
    BuildPhase.PROCESSING_PLATED_HOLES: ("plated_holes", process_plated_hole),
    BuildPhase.PROCESSING_HOLES: ("holes", process_hole),
    BuildPhase.PROCESSING_CUTOUTS: ("cutouts", process_cutout),
    BuildPhase.PROCESSING_TRACES: ("traces", process_trace),
    BuildPhase.PROCESSING_VIAS: ("vias", process_via),
}

_PHASE_EXIT: Dict[BuildPhase, Callable[[BoardWork, BuildContext], BoardWork]] = {
    BuildPhase.PROCESSING_CUTOUTS: flush_cutouts,
}


@dataclass(frozen=True)
class BuildState:
    phase: BuildPhase = BuildPhase.INITIALIZING
    cursor: int = 0

    @property
    def done(self) -> bool:
        return self.phase is BuildPhase.DONE


@dataclass(frozen=True)
class BuildProgress:
    phase: BuildPhase
    cursor: int
    phase_total: int
    steps_done: int
    steps_total: int

    @property
    def fraction(self) -> float:
        if self.steps_total <= 0:
            return 1.0
        return min(1.0, self.steps_done / self.steps_total)


def phase_items(phase: BuildPhase, elements: CircuitElements) -> Sequence[Any]:
    entry = _ELEMENT_PHASES.get(phase)
    if entry is None:
        return ()
    return getattr(elements, entry[0])


def total_steps(elements: CircuitElements) -> int:
    """Transitions from a fresh state to done."""
    # init + finalize + one exit per element phase + one per record
    count = 2 + len(_ELEMENT_PHASES)
    for attr, _ in _ELEMENT_PHASES.values():
        count += len(getattr(elements, attr))
    return count


def _next_phase(phase: BuildPhase) -> BuildPhase:
    return PHASE_ORDER[PHASE_ORDER.index(phase) + 1]


def _process_element(
    phase: BuildPhase, element: Any, work: BoardWork, ctx: BuildContext
) -> BoardWork:
    _, handler = _ELEMENT_PHASES[phase]
    try:
        return handler(work, element, ctx)
    except DegenerateGeometryError as exc:
        logger.warning("Skipping %s [%s]: %s", exc.element_type, exc.element_id, exc.reason)
        return work.with_skipped(SkippedElement(exc.element_type, exc.element_id, exc.reason))
    except UnsupportedShapeError as exc:
        if exc.element_type in FATAL_UNSUPPORTED_KINDS or ctx.config.strict_shapes:
            raise
        logger.warning("Skipping %s", exc)
        return work.with_skipped(
            SkippedElement(exc.element_type, exc.element_id, f"unsupported shape {exc.shape!r}")
        )


def initialize_work(definition: BoardDefinition, ctx: BuildContext) -> BoardWork:
    return build_board_shell(definition, ctx)


def finalize_work(work: BoardWork, ctx: BuildContext) -> BoardWork:
    return replace(work, results=tuple(colorize_work(work, ctx)))


def advance(
    state: BuildState,
    elements: CircuitElements,
    work: Optional[BoardWork],
    ctx: BuildContext,
    definition: Optional[BoardDefinition] = None,
) -> Tuple[BuildState, Optional[BoardWork]]:
    """One transition of the build state machine. ``done`` is absorbing."""
    phase = state.phase
    if phase is BuildPhase.DONE:
        return state, work

    if phase is BuildPhase.INITIALIZING:
        if definition is None:
            definition = resolve_board_definition(elements, ctx.config)
        return BuildState(BuildPhase.PROCESSING_PADS), initialize_work(definition, ctx)

    if work is None:
        raise BuilderStateError(f"No board accumulated before {phase.value}")

    if phase is BuildPhase.FINALIZING:
        return BuildState(BuildPhase.DONE), finalize_work(work, ctx)

    items = phase_items(phase, elements)
    if state.cursor < len(items):
        work = _process_element(phase, items[state.cursor], work, ctx)
        return replace(state, cursor=state.cursor + 1), work

    on_exit = _PHASE_EXIT.get(phase)
    if on_exit is not None:
        work = on_exit(work, ctx)
    next_phase = _next_phase(phase)
    logger.debug("%s -> %s", phase.value, next_phase.value)
    return BuildState(next_phase), work


def _make_context(
    definition: BoardDefinition,
    config: BuildConfig,
    backend: Optional[GeometryBackend],
) -> BuildContext:
    if backend is None:
        backend = backend_from_config(config)
    return BuildContext(
        config=config,
        backend=backend,
        arena=SolidArena(backend),
        thickness=definition.thickness,
        material=definition.material,
    )


def _as_elements(
    elements: Union[CircuitElements, Iterable[Union[Mapping[str, Any], Element]]],
) -> CircuitElements:
    if isinstance(elements, CircuitElements):
        return elements
    return partition_elements(elements)


def _to_result(
    work: BoardWork, ctx: BuildContext, elements: CircuitElements, elapsed: float
) -> BuildResult:
    solids = list(work.results or ())
    stats = {
        "elapsed_s": round(elapsed, 3),
        "backend": ctx.backend.name,
        "input_counts": elements.counts(),
        "output_solids": len(solids),
        "skipped": len(work.skipped),
    }
    logger.info(
        "Built %d solids (%d records skipped) with %s backend in %.2fs",
        len(solids),
        len(work.skipped),
        ctx.backend.name,
        elapsed,
    )
    return BuildResult(
        solids=solids,
        thickness=ctx.thickness,
        material=ctx.material,
        skipped=list(work.skipped),
        stats=stats,
    )


class BoardSolidBuilder:
    """Chunked, cancellable board construction.

    Usage::

        builder = BoardSolidBuilder(records)
        while not builder.step(4):
            ...  # let the host breathe
        result = builder.get_results()

    A fatal error raised from ``step`` marks the builder failed; it cannot
    be stepped again.
    """

    def __init__(
        self,
        elements: Union[CircuitElements, Iterable[Union[Mapping[str, Any], Element]]],
        config: Optional[BuildConfig] = None,
        backend: Optional[GeometryBackend] = None,
    ):
        self.config = config or BuildConfig()
        self.elements = _as_elements(elements)
        self.definition = resolve_board_definition(self.elements, self.config)
        self.ctx = _make_context(self.definition, self.config, backend)
        self.state = BuildState()
        self.total_steps = total_steps(self.elements)
        self._steps_done = 0
        self._work: Optional[BoardWork] = None
        self._result: Optional[BuildResult] = None
        self._error: Optional[BaseException] = None
        self._running = False
        self._elapsed = 0.0

    # ─── State ──────────────────────────────────────────────────────────

    @property
    def phase(self) -> BuildPhase:
        return self.state.phase

    @property
    def is_done(self) -> bool:
        return self.state.done

    @property
    def failed(self) -> bool:
        return self._error is not None

    @property
    def is_running(self) -> bool:
        return self._running

    def progress(self) -> BuildProgress:
        return BuildProgress(
            phase=self.state.phase,
            cursor=self.state.cursor,
            phase_total=len(phase_items(self.state.phase, self.elements)),
            steps_done=self._steps_done,
            steps_total=self.total_steps,
        )

    # ─── Stepping ───────────────────────────────────────────────────────

    def step(self, max_elements: int = 1) -> bool:
        """Run up to ``max_elements`` transitions. Returns True when done.

        ``max_elements <= 0`` runs nothing and only reports completion.
        """
        if self._error is not None:
            raise BuilderStateError(
                f"Builder failed earlier ({self._error}); create a new builder"
            )
        if self.state.done:
            return True
        if max_elements <= 0:
            return self.state.done

        started = time.perf_counter()
        try:
            for _ in range(int(max_elements)):
                self.state, self._work = advance(
                    self.state, self.elements, self._work, self.ctx, self.definition
                )
                self._steps_done += 1
                if self.state.done:
                    break
        except Exception as exc:
            self._fail(exc)
            raise
        finally:
            self._elapsed += time.perf_counter() - started

        if self.state.done:
            self._result = _to_result(self._work, self.ctx, self.elements, self._elapsed)
            self._work = None
            self.ctx.arena.close()
        return self.state.done

    def _fail(self, exc: BaseException) -> None:
        self._error = exc
        self._work = None
        self.ctx.arena.close()
        logger.error("Board build failed in %s: %s", self.state.phase.value, exc)

    def get_results(self) -> BuildResult:
        if self._error is not None:
            raise BuilderStateError(f"Builder failed: {self._error}")
        if self._result is None:
            raise BuilderStateError(
                f"Build not finished (phase {self.state.phase.value})"
            )
        return self._result

    def close(self) -> None:
        """Abandon the build and release intermediate solids."""
        self._work = None
        self.ctx.arena.close()

    def preview(self) -> List[ColoredSolid]:
        """Simplified shell, available before any step runs."""
        return build_preview_solids(self.elements, self.config, self.ctx.backend)

    # ─── Driving ────────────────────────────────────────────────────────

    def _claim(self) -> None:
        if self._running:
            raise BuilderBusyError("A drive loop is already running on this builder")
        self._running = True

    def iter_steps(self, chunk: int = 1) -> Iterator[BuildProgress]:
        """Generator driver: one chunk per ``next()``."""
        self._claim()
        try:
            while not self.state.done:
                self.step(max(1, chunk))
                yield self.progress()
        finally:
            self._running = False

    def drive(
        self,
        chunk: int = 1,
        should_cancel: Optional[Callable[[], bool]] = None,
        on_progress: Optional[Callable[[BuildProgress], None]] = None,
    ) -> bool:
        """Step to completion unless cancelled. Returns True when done."""
        self._claim()
        try:
            while not self.state.done:
                if should_cancel is not None and should_cancel():
                    logger.info("Build cancelled in %s", self.state.phase.value)
                    return False
                self.step(max(1, chunk))
                if on_progress is not None:
                    on_progress(self.progress())
            return True
        finally:
            self._running = False

    async def drive_async(
        self,
        chunk: int = 1,
        cancel_event: Optional[asyncio.Event] = None,
        on_progress: Optional[Callable[[BuildProgress], None]] = None,
    ) -> bool:
        """Cooperative driver: yields to the event loop between chunks."""
        self._claim()
        try:
            while not self.state.done:
                if cancel_event is not None and cancel_event.is_set():
                    logger.info("Build cancelled in %s", self.state.phase.value)
                    return False
                self.step(max(1, chunk))
                if on_progress is not None:
                    on_progress(self.progress())
                await asyncio.sleep(0)
            return True
        finally:
            self._running = False


def build_board_solids(
    elements: Union[CircuitElements, Iterable[Union[Mapping[str, Any], Element]]],
    config: Optional[BuildConfig] = None,
    backend: Optional[GeometryBackend] = None,
) -> BuildResult:
    """Batch pipeline: every transition, no yielding."""
    config = config or BuildConfig()
    elements = _as_elements(elements)
    definition = resolve_board_definition(elements, config)
    ctx = _make_context(definition, config, backend)

    started = time.perf_counter()
    state, work = BuildState(), None
    with ctx.arena:
        while not state.done:
            state, work = advance(state, elements, work, ctx, definition)
    return _to_result(work, ctx, elements, time.perf_counter() - started)
