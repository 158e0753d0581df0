"""
Switches a visualization session between the hierarchy and cluster
presentations.

The controller is an explicit state machine:

    Idle(mode) --switch_mode(animate=False)--> Idle(target)
    Idle(mode) --switch_mode(animate=True)-->  Transitioning(FADING_OUT)
    FADING_OUT --fade-out finished--> teardown, create --> FADING_IN
    FADING_IN  --fade-in finished-->  Idle(target)

Fades complete through callbacks, either from the presentation itself
(``fade_out(duration_ms, done)`` / ``fade_in(duration_ms, done)``) or from
the scheduler, so the whole sequence can be driven without a running event
loop. Switch requests that arrive mid-transition are queued and replayed in
order once the controller is idle again.
"""

import enum
import logging
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Set

from PyQt5.QtCore import QObject, QTimer, pyqtSignal

from ..config import VisualizationConfig
from ..exceptions import InvalidModeError
from ..graph.graph_manager import GraphManager
from .presentations import DEFAULT_FACTORIES, Camera

logger = logging.getLogger(__name__)


class ViewMode(enum.Enum):
    HIERARCHY = "hierarchy"
    CLUSTER = "cluster"


_ALIASES = {"tree": ViewMode.HIERARCHY}

_PIPELINE_SECTIONS = ("resolver", "grouping", "connections")
_PRESENTATION_SECTIONS = ("boundaries", "force")


class Phase(enum.Enum):
    FADING_OUT = "fading_out"
    FADING_IN = "fading_in"


@dataclass
class ViewState:
    """Single source of truth for which presentation is active"""
    mode: Optional[ViewMode] = None
    transitioning: bool = False
    phase: Optional[Phase] = None
    from_mode: Optional[ViewMode] = None
    target_mode: Optional[ViewMode] = None
    saved_camera: Optional[Camera] = None
    saved_selection: Set[str] = field(default_factory=set)


def qt_scheduler(delay_ms: int, callback: Callable[[], None]):
    QTimer.singleShot(int(delay_ms), callback)


def coerce_mode(mode) -> ViewMode:
    """ViewMode for an enum member or a (case-insensitive) name"""
    if isinstance(mode, ViewMode):
        return mode
    if isinstance(mode, str):
        name = mode.strip().lower()
        if name in _ALIASES:
            return _ALIASES[name]
        for member in ViewMode:
            if member.value == name:
                return member
    raise InvalidModeError(mode, [m.value for m in ViewMode])


class ViewModeController(QObject):
    """Owns exactly one active presentation at a time"""

    mode_changed = pyqtSignal(str)                 # new mode
    transition_started = pyqtSignal(str, str)      # from, to
    transition_finished = pyqtSignal(str, str)     # from, to
    overlay_toggled = pyqtSignal(bool)

    def __init__(self, container, tree=None, config=None, factories=None,
                 scheduler=None, manager=None, activate=True):
        """
        Args:
            container: Object the presentations draw into. Its ``clear()``
                       is used when a presentation cannot tear itself down.
            tree: Navigation tree (root id -> node)
            config: VisualizationConfig (default: all defaults)
            factories: Mapping of mode name -> callable(container, manager,
                       config) building a presentation
            scheduler: callable(delay_ms, callback) used for fades without a
                       presentation-provided animation and for the timeout
                       guard (default: QTimer.singleShot)
            manager: Existing GraphManager to share instead of building one
            activate: Switch to the configured default mode immediately
        """
        super().__init__()
        self.container = container
        self.config = config or VisualizationConfig()
        self.manager = manager or GraphManager(tree, self.config)
        self.factories: Dict[ViewMode, Callable] = {
            coerce_mode(name): factory
            for name, factory in (factories or DEFAULT_FACTORIES).items()
        }
        self.scheduler = scheduler or qt_scheduler
        self.state = ViewState()
        self.presentation = None
        self.overlay_visible = False
        self._pending = deque()
        self._token = 0

        if activate:
            self.switch_mode(self.config.view_mode.default_mode, animate=False)

    # --- Queries ------------------------------------------------------

    @property
    def current_mode(self) -> Optional[ViewMode]:
        return self.state.mode

    @property
    def current_presentation(self):
        return self.presentation

    @property
    def transitioning(self) -> bool:
        return self.state.transitioning

    def available_modes(self):
        return [mode.value for mode in ViewMode]

    def is_mode_available(self, mode) -> bool:
        try:
            return coerce_mode(mode) in self.factories
        except InvalidModeError:
            return False

    # --- Switching ----------------------------------------------------

    def switch_mode(self, mode, animate=True):
        """
        Make ``mode`` the active presentation.

        Raises:
            InvalidModeError: for an unknown mode; the view state is left
                              untouched
        """
        target = coerce_mode(mode)
        if target not in self.factories:
            raise InvalidModeError(mode, [m.value for m in self.factories])

        if self.state.transitioning:
            logger.info("Queueing switch to %s until the current transition ends", target.value)
            self._pending.append((target, animate))
            return

        if target == self.state.mode:
            return

        previous = self.state.mode
        if animate and previous is not None:
            self._start_animated(previous, target)
        else:
            self._switch_immediately(target)

    def _switch_immediately(self, target: ViewMode):
        self.state.transitioning = True
        self.state.target_mode = target
        try:
            self._save_state()
            self._teardown(self.presentation)
            self.presentation = None
            self.presentation = self._create(target)
            self.state.mode = target
            self._restore_state()
        finally:
            self.state.transitioning = False
            self.state.target_mode = None
            if self.presentation is None:
                self.state.mode = None

        logger.info("View mode is now %s", target.value)
        self.mode_changed.emit(target.value)
        self._drain_pending()

    def _start_animated(self, previous: ViewMode, target: ViewMode):
        self._token += 1
        token = self._token
        state = self.state
        state.transitioning = True
        state.from_mode = previous
        state.target_mode = target

        self.transition_started.emit(previous.value, target.value)
        with self._abort_on_error(token):
            self._save_state()
            self._set_overlay(True)
            self._enter_phase(Phase.FADING_OUT)

    @contextmanager
    def _abort_on_error(self, token: int):
        """Return to Idle when a transition step raises, then re-raise"""
        try:
            yield
        except Exception:
            # A queued switch replayed inside this step owns the state now
            if token == self._token and self.state.transitioning:
                logger.exception(
                    "Transition %s -> %s failed",
                    self.state.from_mode.value, self.state.target_mode.value,
                )
                self._abort_transition()
            raise

    def _abort_transition(self):
        state = self.state
        self._token += 1
        state.phase = None
        state.from_mode = None
        state.target_mode = None
        state.transitioning = False
        if self.presentation is None:
            state.mode = None
        if self._pending:
            logger.warning("Dropping %d queued view mode switches", len(self._pending))
            self._pending.clear()
        if self.overlay_visible:
            self._set_overlay(False)

    def _enter_phase(self, phase: Phase):
        self.state.phase = phase
        token = self._token
        half = self.config.view_mode.transition_duration / 2.0

        if phase is Phase.FADING_OUT:
            done = self._guarded(token, phase, self.on_fade_out_finished)
            fade = getattr(self.presentation, "fade_out", None)
        else:
            done = self._guarded(token, phase, self.on_fade_in_finished)
            fade = getattr(self.presentation, "fade_in", None)

        timeout = self.config.view_mode.transition_timeout
        if timeout:
            self.scheduler(timeout, self._guarded(token, phase, self._phase_timed_out))

        if callable(fade):
            fade(half, done)
        else:
            self.scheduler(half, done)

    def _guarded(self, token: int, phase: Phase, handler):
        """Completion callback that ignores stale or repeated signals"""
        def callback():
            if token != self._token or self.state.phase is not phase:
                return
            handler()
        return callback

    def _phase_timed_out(self):
        logger.warning(
            "Transition %s -> %s stalled while %s, forcing it to continue",
            self.state.from_mode.value, self.state.target_mode.value, self.state.phase.value,
        )
        if self.state.phase is Phase.FADING_OUT:
            self.on_fade_out_finished()
        else:
            self.on_fade_in_finished()

    def on_fade_out_finished(self):
        """Fade-out completion; ignored outside the FADING_OUT phase"""
        if self.state.phase is not Phase.FADING_OUT:
            return
        with self._abort_on_error(self._token):
            if self.presentation is not None:
                self.presentation.opacity = 0.0
            # Old presentation is fully gone before the new one is built
            self._teardown(self.presentation)
            self.presentation = None
            self.presentation = self._create(self.state.target_mode)
            self.presentation.opacity = 0.0
            self.state.mode = self.state.target_mode
            self._enter_phase(Phase.FADING_IN)

    def on_fade_in_finished(self):
        """Fade-in completion; ignored outside the FADING_IN phase"""
        state = self.state
        if state.phase is not Phase.FADING_IN:
            return
        with self._abort_on_error(self._token):
            self.presentation.opacity = 1.0
            self._set_overlay(False)
            self._restore_state()

        previous, target = state.from_mode, state.target_mode
        state.phase = None
        state.from_mode = None
        state.target_mode = None
        state.transitioning = False

        logger.info("View mode is now %s", target.value)
        self.transition_finished.emit(previous.value, target.value)
        self.mode_changed.emit(target.value)
        self._drain_pending()

    def _drain_pending(self):
        while self._pending and not self.state.transitioning:
            target, animate = self._pending.popleft()
            self.switch_mode(target, animate)

    # --- Presentation lifecycle ----------------------------------------

    def _create(self, mode: ViewMode):
        # Presentations are always built from freshly derived data
        self.manager.rebuild()
        presentation = self.factories[mode](self.container, self.manager, self.config)
        if hasattr(presentation, "scheduler"):
            presentation.scheduler = self.scheduler
        return presentation

    def _teardown(self, presentation):
        if presentation is None:
            return
        destroy = getattr(presentation, "destroy", None)
        if not callable(destroy):
            self._clear_container()
            return
        try:
            destroy()
        except Exception:
            logger.exception("Presentation teardown failed, clearing container")
            self._clear_container()

    def _clear_container(self):
        clear = getattr(self.container, "clear", None)
        if not callable(clear):
            return
        try:
            clear()
        except Exception:
            logger.exception("Could not clear the presentation container")

    def _set_overlay(self, visible: bool):
        self.overlay_visible = visible
        hook = getattr(self.container, "show_overlay" if visible else "hide_overlay", None)
        if callable(hook):
            hook()
        self.overlay_toggled.emit(visible)

    # --- Camera / selection preservation -------------------------------

    def _save_state(self):
        """Best effort: missing camera or selection is not an error"""
        presentation = self.presentation
        if presentation is None:
            return
        options = self.config.view_mode

        if options.preserve_zoom:
            camera = getattr(presentation, "camera", None)
            if camera is not None:
                self.state.saved_camera = Camera(camera.x, camera.y, camera.scale)

        if options.preserve_selection:
            selection = getattr(presentation, "selection", None)
            if selection is not None:
                self.state.saved_selection = set(selection)

    def _restore_state(self):
        presentation = self.presentation
        if presentation is None:
            return
        options = self.config.view_mode

        if options.preserve_zoom and self.state.saved_camera is not None:
            set_camera = getattr(presentation, "set_camera", None)
            if callable(set_camera):
                set_camera(self.state.saved_camera)

        if options.preserve_selection and self.state.saved_selection:
            restore = getattr(presentation, "restore_selection", None)
            if callable(restore):
                restore(self.state.saved_selection)

    # --- Data and options ----------------------------------------------

    def update_data(self, tree):
        """
        Re-derive the graphs from a new tree and push them into the active
        presentation without switching modes.
        """
        self.manager.set_tree(tree)
        update = getattr(self.presentation, "update_data", None)
        if callable(update):
            update(self.manager)

    def update_options(self, **changes):
        """
        Change options of any component at runtime.

        Keys may be camelCase or snake_case. View-mode options apply to the
        controller, grouping/resolver/connection options re-run the pipeline,
        boundary and force options are forwarded to the active presentation.

        Raises:
            ConfigError: if no component owns a key; nothing is changed
        """
        per_section = VisualizationConfig.route(changes)
        self.config = self.config.replace(**changes)

        if any(per_section[name] for name in _PIPELINE_SECTIONS):
            self.manager.set_config(self.config)
            update_data = getattr(self.presentation, "update_data", None)
            if callable(update_data):
                update_data(self.manager)

        forwarded = {
            key: value
            for name in _PRESENTATION_SECTIONS
            for key, value in per_section[name].items()
        }
        update = getattr(self.presentation, "update_options", None)
        if forwarded and callable(update):
            update(**forwarded)

    def destroy(self):
        """Tear down the active presentation and clear the container"""
        self._pending.clear()
        self._token += 1
        self._teardown(self.presentation)
        self.presentation = None
        self._clear_container()
        self.state = ViewState()
