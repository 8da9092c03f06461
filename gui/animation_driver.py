"""
GeoCanvas - Animation Driver
============================

Drives variable animation from the Qt event loop: one construction.animation
tick per timer shot (16 ms, ~60 FPS), one resolution pass per tick.

The timer only runs while at least one variable plays. The host calls
ensure_running() after starting an animation and shutdown() when the canvas
goes away; no tick is delivered after shutdown.

Usage:
    driver = AnimationDriver(lambda: canvas.scene)
    driver.scene_changed.connect(canvas.set_scene)
    driver.ensure_running()
"""

from typing import Callable, Optional

from loguru import logger
from PySide6.QtCore import QObject, QTimer, Signal

from config.tolerances import Tolerances
from construction.animation import is_animating, tick
from construction.scene import Scene


class AnimationDriver(QObject):
    """QTimer based animation loop, emits the new scene after every tick."""

    scene_changed = Signal(object)
    stopped = Signal()

    INTERVAL_MS = Tolerances.ANIMATION_INTERVAL_MS

    def __init__(self, scene_provider: Callable[[], Scene], parent: Optional[QObject] = None):
        super().__init__(parent)
        self._scene_provider = scene_provider
        self._shut_down = False
        self._ticks = 0

        self._timer = QTimer(self)
        self._timer.setInterval(self.INTERVAL_MS)
        self._timer.timeout.connect(self._on_timeout)

    @property
    def is_running(self) -> bool:
        return self._timer.isActive()

    @property
    def tick_count(self) -> int:
        return self._ticks

    def ensure_running(self) -> bool:
        """
        Starts the timer if a variable plays.

        Returns:
            True if the timer is running afterwards
        """
        if self._shut_down:
            return False
        if not self._timer.isActive() and is_animating(self._scene_provider()):
            self._timer.start()
            logger.debug("[Animation] Driver started")
        return self._timer.isActive()

    def step(self) -> bool:
        """
        Runs one tick immediately (also used by the timer).

        Returns:
            True if the scene changed
        """
        if self._shut_down:
            return False
        updated = tick(self._scene_provider())
        if updated is None:
            self._stop()
            return False

        self._ticks += 1
        self.scene_changed.emit(updated)
        if not is_animating(updated):
            self._stop()
        return True

    def shutdown(self) -> None:
        """Host unmounted: stop for good."""
        self._shut_down = True
        self._timer.stop()
        logger.debug(f"[Animation] Driver shut down after {self._ticks} ticks")

    def _on_timeout(self) -> None:
        self.step()

    def _stop(self) -> None:
        if self._timer.isActive():
            self._timer.stop()
            logger.debug("[Animation] Driver idle, no variable playing")
        self.stopped.emit()
