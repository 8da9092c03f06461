"""
GeoCanvas Construction - Variables
Named scalars referenced by formulas and rotation angles, with a
one-way play animation between min and max.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Optional

from .geometry import to_camel, new_id


class AnimationDirection(Enum):
    FORWARD = "forward"
    BACKWARD = "backward"


@dataclass
class Variable:
    name: str
    value: float = 1.0
    min: float = -10.0
    max: float = 10.0
    step: float = 0.1
    id: str = field(default_factory=lambda: new_id("var"))
    is_playing: bool = False
    direction: AnimationDirection = AnimationDirection.FORWARD
    speed: Optional[float] = None

    def advance(self) -> None:
        """
        One animation step: move by step in the play direction, clamp at
        the bound and stop playing there. Values are rounded to 3 decimals.
        """
        if not self.is_playing:
            return

        if self.direction is AnimationDirection.BACKWARD:
            value = self.value - self.step
            if value <= self.min:
                value = self.min
                self.is_playing = False
        else:
            value = self.value + self.step
            if value >= self.max:
                value = self.max
                self.is_playing = False

        self.value = round(value, 3)

    def to_dict(self) -> dict:
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if f.name == "direction":
                data["animationDirection"] = value.value
            else:
                data[to_camel(f.name)] = value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Variable":
        """
        Raises:
            KeyError: name missing
            ValueError: non-numeric value or unknown direction
        """
        var = cls(
            name=str(data["name"]).strip(),
            value=float(data.get("value", 1.0)),
            min=float(data.get("min", -10.0)),
            max=float(data.get("max", 10.0)),
            step=float(data.get("step", 0.1)),
            is_playing=bool(data.get("isPlaying", False)),
            direction=AnimationDirection(data.get("animationDirection") or "forward"),
            speed=data.get("speed"),
        )
        if data.get("id"):
            var.id = str(data["id"])
        return var
