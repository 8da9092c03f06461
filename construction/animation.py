"""
GeoCanvas Construction - Variable animation tick
The host calls tick() once per frame; the Qt timer in gui.animation_driver
does that for the desktop front end.
"""

from typing import Optional

from loguru import logger

from .scene import Scene
from .solver import ConstraintResolver


def is_animating(scene: Scene) -> bool:
    return any(var.is_playing for var in scene.variables.values())


def tick(scene: Scene) -> Optional[Scene]:
    """
    Advances every playing variable by one step and resolves once.

    Returns:
        the updated copy, or None when no variable is playing (unchanged)
    """
    if not is_animating(scene):
        return None

    scene = scene.copy()
    for var in scene.variables.values():
        was_playing = var.is_playing
        var.advance()
        if was_playing and not var.is_playing:
            logger.debug(f"[Animation] '{var.name}' stopped at {var.value}")

    ConstraintResolver().resolve(scene)
    return scene
