"""Zoom and pan composition on top of the base projection.

The composer owns a single ``ZoomState`` and a gesture phase modelled as
tagged variants. Every mutation clamps the scale into ``[min_zoom, max_zoom]``
and notifies subscribers. Animated transitions are stepped one frame at a time
through an injectable scheduler; a newer animation supersedes an older one by
bumping a generation counter, so stale frames are dropped when they fire.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, ClassVar, Protocol, Sequence, Union

from .features import spherical_centroid
from .models import Viewport
from .util import fmt_num


_LOGGER = logging.getLogger("simplemaps.zoom")

DEFAULT_STEP = 1.5


class GesturePhase(str, Enum):
    IDLE = "idle"
    PANNING = "panning"
    PINCHING = "pinching"
    ANIMATING = "animating"


@dataclass(frozen=True, slots=True)
class ZoomState:
    scale: float = 1.0
    translate_x: float = 0.0
    translate_y: float = 0.0


@dataclass(frozen=True, slots=True)
class AnimationTask:
    """Start and target of one animated transition."""

    start: ZoomState
    target: ZoomState
    start_time: float
    duration_ms: float
    generation: int

    def progress(self, now_ms: float) -> float:
        if self.duration_ms <= 0:
            return 1.0
        return min(max((now_ms - self.start_time) / self.duration_ms, 0.0), 1.0)

    def state_at(self, now_ms: float) -> tuple[ZoomState, bool]:
        """Interpolated state and whether the animation has finished."""
        progress = self.progress(now_ms)
        if progress >= 1.0:
            # settle on the exact target, no interpolation residue
            return (self.target, True)
        eased = ease_in_out_cubic(progress)
        start, target = self.start, self.target
        return (
            ZoomState(
                scale=start.scale + (target.scale - start.scale) * eased,
                translate_x=start.translate_x + (target.translate_x - start.translate_x) * eased,
                translate_y=start.translate_y + (target.translate_y - start.translate_y) * eased,
            ),
            False,
        )


@dataclass(frozen=True, slots=True)
class Idle:
    phase: ClassVar[GesturePhase] = GesturePhase.IDLE


@dataclass(frozen=True, slots=True)
class Panning:
    phase: ClassVar[GesturePhase] = GesturePhase.PANNING

    start_x: float
    start_y: float
    base_translate_x: float
    base_translate_y: float


@dataclass(frozen=True, slots=True)
class Pinching:
    phase: ClassVar[GesturePhase] = GesturePhase.PINCHING

    start_distance: float
    midpoint: tuple[float, float]
    last_distance: float


@dataclass(frozen=True, slots=True)
class Animating:
    phase: ClassVar[GesturePhase] = GesturePhase.ANIMATING

    task: AnimationTask


Gesture = Union[Idle, Panning, Pinching, Animating]


@dataclass(frozen=True, slots=True)
class ZoomEvent:
    state: ZoomState
    source: str


@dataclass(frozen=True, slots=True)
class AffineTransform:
    """Scale about the viewport centre, then pan by the translate offset."""

    scale: float
    translate_x: float
    translate_y: float
    center_x: float
    center_y: float

    def to_svg(self) -> str:
        cx, cy = self.center_x, self.center_y
        return (
            f"translate({fmt_num(cx + self.translate_x)}, {fmt_num(cy + self.translate_y)}) "
            f"scale({fmt_num(self.scale)}) translate({fmt_num(-cx)}, {fmt_num(-cy)})"
        )

    def apply(self, x: float, y: float) -> tuple[float, float]:
        return (
            (x - self.center_x) * self.scale + self.center_x + self.translate_x,
            (y - self.center_y) * self.scale + self.center_y + self.translate_y,
        )

    def invert(self, x: float, y: float) -> tuple[float, float]:
        return (
            (x - self.center_x - self.translate_x) / self.scale + self.center_x,
            (y - self.center_y - self.translate_y) / self.scale + self.center_y,
        )


def ease_in_out_cubic(t: float) -> float:
    if t < 0.5:
        return 4 * t * t * t
    return 1 - math.pow(-2 * t + 2, 3) / 2


class FrameScheduler(Protocol):
    def request_frame(self, callback: Callable[[], None]) -> None: ...


class AsyncioFrameScheduler:
    """Run animation frames as separate callbacks on an asyncio loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None, frame_ms: float = 1000.0 / 60) -> None:
        self._loop = loop
        self.frame_ms = frame_ms

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def request_frame(self, callback: Callable[[], None]) -> None:
        self.loop.call_later(self.frame_ms / 1000.0, callback)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


Listener = Callable[[ZoomEvent], None]
ProjectFn = Callable[[Sequence[float]], Any]


class ZoomComposer:
    """Owns the zoom state and turns wheel, pointer and touch input into it."""

    def __init__(
        self,
        viewport: Viewport,
        *,
        min_zoom: float = 1.0,
        max_zoom: float = 8.0,
        initial_zoom: float = 1.0,
        center: Sequence[float] = (0.0, 0.0),
        sensitivity: float = 0.001,
        animation_ms: float = 800.0,
        feature_zoom: float = 4.0,
        projection: ProjectFn | None = None,
        clock: Callable[[], float] | None = None,
        scheduler: FrameScheduler | None = None,
    ) -> None:
        if min_zoom > max_zoom:
            raise ValueError(f"min_zoom ({min_zoom}) must not exceed max_zoom ({max_zoom})")
        if min_zoom <= 0:
            raise ValueError(f"min_zoom must be positive, got {min_zoom}")
        self.viewport = viewport
        self.min_zoom = float(min_zoom)
        self.max_zoom = float(max_zoom)
        self.initial_zoom = self.clamp(initial_zoom)
        self.center = (float(center[0]), float(center[1]))
        self.sensitivity = float(sensitivity)
        self.animation_ms = float(animation_ms)
        self.feature_zoom = float(feature_zoom)
        self.projection = projection
        self.display_ratio: tuple[float, float] = (1.0, 1.0)
        self.on_change: list[Listener] = []
        self.on_start: list[Listener] = []
        self.on_end: list[Listener] = []
        self._clock = clock or _monotonic_ms
        self._scheduler = scheduler
        self._generation = 0
        self._state = ZoomState(self.initial_zoom, self.center[0], self.center[1])
        self._gesture: Gesture = Idle()

    # -- read side ----------------------------------------------------------

    @property
    def state(self) -> ZoomState:
        return self._state

    @property
    def gesture(self) -> Gesture:
        return self._gesture

    @property
    def phase(self) -> GesturePhase:
        return self._gesture.phase

    @property
    def transform(self) -> AffineTransform:
        cx, cy = self.viewport.center
        return AffineTransform(
            scale=self._state.scale,
            translate_x=self._state.translate_x,
            translate_y=self._state.translate_y,
            center_x=cx,
            center_y=cy,
        )

    def clamp(self, scale: float) -> float:
        return max(self.min_zoom, min(float(scale), self.max_zoom))

    def set_display_size(self, width: float, height: float) -> None:
        """Record the rendered box size so device pixels map to logical units."""
        if width <= 0 or height <= 0:
            raise ValueError(f"Rendered size must be positive, got {width}x{height}")
        self.display_ratio = (width / self.viewport.width, height / self.viewport.height)

    # -- notifications ------------------------------------------------------

    def _emit(self, listeners: list[Listener], source: str) -> None:
        event = ZoomEvent(self._state, source)
        for listener in list(listeners):
            listener(event)

    def _commit(self, state: ZoomState, source: str) -> ZoomState:
        self._state = ZoomState(self.clamp(state.scale), state.translate_x, state.translate_y)
        self._emit(self.on_change, source)
        return self._state

    def _end_gesture(self, source: str) -> None:
        if isinstance(self._gesture, Idle):
            return
        self._gesture = Idle()
        self._emit(self.on_end, source)

    def _cancel_animation(self, source: str) -> None:
        if isinstance(self._gesture, Animating):
            self._generation += 1
            self._end_gesture(source)

    def _ignored(self, action: str) -> bool:
        if isinstance(self._gesture, Animating):
            _LOGGER.debug("Ignoring %s while animating", action)
            return True
        return False

    # -- wheel --------------------------------------------------------------

    def wheel_zoom(self, delta_y: float, pointer_x: float, pointer_y: float) -> ZoomState:
        """Zoom by a wheel delta keeping the content under the pointer fixed.

        The pointer is in device pixels from the rendered box's top-left.
        """
        if self._ignored("wheel"):
            return self._state
        current = self._state.scale
        new_scale = self.clamp(current * (1 + (-delta_y * self.sensitivity)))
        if new_scale == current:
            return self._state

        ratio_x, ratio_y = self.display_ratio
        mouse_x = pointer_x - self.viewport.width * ratio_x / 2
        mouse_y = pointer_y - self.viewport.height * ratio_y / 2
        scale_ratio = new_scale / current
        tx, ty = self._state.translate_x, self._state.translate_y
        return self._commit(
            ZoomState(
                new_scale,
                tx - (mouse_x / ratio_x - tx) * (scale_ratio - 1),
                ty - (mouse_y / ratio_y - ty) * (scale_ratio - 1),
            ),
            "wheel",
        )

    # -- pointer ------------------------------------------------------------

    def pointer_down(self, x: float, y: float, button: int = 0) -> bool:
        if button != 0 or not isinstance(self._gesture, Idle):
            _LOGGER.debug("Ignoring pointer down (button=%s, phase=%s)", button, self.phase.value)
            return False
        self._begin_pan(x, y)
        return True

    def pointer_move(self, x: float, y: float) -> ZoomState:
        """Drag pan: baseline translate plus the pointer delta in logical units."""
        gesture = self._gesture
        if not isinstance(gesture, Panning):
            return self._state
        ratio_x, ratio_y = self.display_ratio
        return self._commit(
            ZoomState(
                self._state.scale,
                gesture.base_translate_x + (x - gesture.start_x) / ratio_x,
                gesture.base_translate_y + (y - gesture.start_y) / ratio_y,
            ),
            "pan",
        )

    drag_pan = pointer_move

    def pointer_up(self) -> None:
        if isinstance(self._gesture, Panning):
            self._end_gesture("pan")

    def _begin_pan(self, x: float, y: float) -> None:
        self._gesture = Panning(
            start_x=float(x),
            start_y=float(y),
            base_translate_x=self._state.translate_x,
            base_translate_y=self._state.translate_y,
        )
        self._emit(self.on_start, "pan")

    # -- touch --------------------------------------------------------------

    def touch_start(self, touches: Sequence[Sequence[float]]) -> None:
        if self._ignored("touch start") or not touches:
            return
        if len(touches) == 1:
            if isinstance(self._gesture, Idle):
                self._begin_pan(touches[0][0], touches[0][1])
            return
        if isinstance(self._gesture, (Idle, Panning)):
            was_idle = isinstance(self._gesture, Idle)
            distance = _distance(touches[0], touches[1])
            self._gesture = Pinching(
                start_distance=distance,
                midpoint=(
                    (touches[0][0] + touches[1][0]) / 2,
                    (touches[0][1] + touches[1][1]) / 2,
                ),
                last_distance=distance,
            )
            if was_idle:
                self._emit(self.on_start, "pinch")

    def touch_move(self, touches: Sequence[Sequence[float]]) -> ZoomState:
        gesture = self._gesture
        if len(touches) == 1 and isinstance(gesture, Panning):
            return self.pointer_move(touches[0][0], touches[0][1])
        if len(touches) >= 2 and isinstance(gesture, Pinching):
            return self.pinch_zoom(touches[0], touches[1])
        return self._state

    def pinch_zoom(self, touch1: Sequence[float], touch2: Sequence[float]) -> ZoomState:
        """Scale by the change in distance since the previous pinch step."""
        gesture = self._gesture
        if not isinstance(gesture, Pinching):
            return self._state
        distance = _distance(touch1, touch2)
        if gesture.last_distance <= 0 or distance <= 0:
            # coincident touches give no usable ratio; rebase and wait
            self._gesture = Pinching(gesture.start_distance, gesture.midpoint, distance)
            return self._state
        new_scale = self._state.scale * (distance / gesture.last_distance)
        self._gesture = Pinching(gesture.start_distance, gesture.midpoint, distance)
        return self._commit(
            ZoomState(new_scale, self._state.translate_x, self._state.translate_y),
            "pinch",
        )

    def touch_end(self, remaining: int | Sequence[Sequence[float]] = 0) -> None:
        count = remaining if isinstance(remaining, int) else len(remaining)
        gesture = self._gesture
        if isinstance(gesture, Panning) and count == 0:
            self._end_gesture("pan")
        elif isinstance(gesture, Pinching) and count < 2:
            self._end_gesture("pinch")

    # -- animated focus -----------------------------------------------------

    def target_for(self, point: Sequence[float], level: float) -> ZoomState:
        """State that puts a base-projected point at the viewport centre."""
        scale = self.clamp(level)
        cx, cy = self.viewport.center
        return ZoomState(scale, -(point[0] - cx) * scale, -(point[1] - cy) * scale)

    def zoom_to_feature(self, feature: Any, level: float | None = None) -> bool:
        """Animate so the feature centroid lands in the viewport centre.

        Returns False, leaving the state untouched, when the centroid cannot
        be computed or projected.
        """
        if self.projection is None:
            _LOGGER.warning("zoom_to_feature needs a base projection")
            return False
        centroid = _centroid(feature)
        projected = self.projection(centroid) if centroid is not None else None
        if projected is None:
            _LOGGER.warning("Cannot zoom to %s: centroid %s does not project", _describe(feature), centroid)
            return False
        self.animate_to(self.target_for(projected, level if level is not None else self.feature_zoom))
        return True

    def animate_to(self, target: ZoomState) -> AnimationTask:
        if isinstance(self._gesture, (Panning, Pinching)):
            self._end_gesture("cancel")
        self._generation += 1
        task = AnimationTask(
            start=self._state,
            target=ZoomState(self.clamp(target.scale), target.translate_x, target.translate_y),
            start_time=self._clock(),
            duration_ms=self.animation_ms,
            generation=self._generation,
        )
        starting = not isinstance(self._gesture, Animating)
        self._gesture = Animating(task)
        if starting:
            self._emit(self.on_start, "animation")
        self._request_frame(task.generation)
        return task

    def advance(self, now_ms: float | None = None) -> ZoomState:
        """Apply one animation step for ``now_ms`` (defaults to the clock)."""
        gesture = self._gesture
        if not isinstance(gesture, Animating):
            return self._state
        state, done = gesture.task.state_at(self._clock() if now_ms is None else now_ms)
        self._commit(state, "animation")
        if done:
            self._end_gesture("animation")
        else:
            self._request_frame(gesture.task.generation)
        return self._state

    def _request_frame(self, generation: int) -> None:
        if self._scheduler is None:
            return
        self._scheduler.request_frame(lambda: self._on_frame(generation))

    def _on_frame(self, generation: int) -> None:
        if generation != self._generation:
            _LOGGER.debug("Dropping frame from superseded animation %d", generation)
            return
        self.advance()

    # -- programmatic -------------------------------------------------------

    def set_zoom(
        self,
        scale: float,
        translate_x: float | None = None,
        translate_y: float | None = None,
    ) -> ZoomState:
        self._cancel_animation("programmatic")
        return self._commit(
            ZoomState(
                scale,
                self._state.translate_x if translate_x is None else translate_x,
                self._state.translate_y if translate_y is None else translate_y,
            ),
            "programmatic",
        )

    def zoom_in(self, step: float = DEFAULT_STEP) -> ZoomState:
        return self.set_zoom(self._state.scale * step)

    def zoom_out(self, step: float = DEFAULT_STEP) -> ZoomState:
        return self.set_zoom(self._state.scale / step)

    def reset(self) -> ZoomState:
        return self.set_zoom(self.initial_zoom, self.center[0], self.center[1])


def _distance(first: Sequence[float], second: Sequence[float]) -> float:
    return math.hypot(first[0] - second[0], first[1] - second[1])


def _centroid(feature: Any) -> tuple[float, float] | None:
    centroid = getattr(feature, "centroid", None)
    if callable(centroid):
        return centroid()
    return spherical_centroid(getattr(feature, "geometry", feature))


def _describe(feature: Any) -> str:
    return str(getattr(feature, "key", None) or type(feature).__name__)
