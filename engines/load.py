#!/usr/bin/env python3
"""
Load Models
===========

External loads connected across the module terminals:

- FixedResistor: constant resistance
- VariableResistor: wiper-controlled resistance with optional temperature
  dependency

        R = R_const + pos * R_ref
        R = R_const + pos * R_ref * (1 + alpha * (T - T_ref))    (T_dep)

  The total resistance lies in [R_const, R_const + R_ref]. The wiper
  position is driven by a schedule of time, normally a Ramp.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

import numpy as np

from config import DEFAULT_CONFIG
from .errors import InvalidParameterError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ramp:
    """Linear ramp from offset to offset + height over duration, starting at start_time."""
    height: float = 1.0
    duration: float = 1.0
    offset: float = 0.0
    start_time: float = 0.0

    def __post_init__(self):
        if self.duration <= 0:
            raise InvalidParameterError(f"Ramp duration must be positive, got {self.duration}")

    def __call__(self, t: float) -> float:
        fraction = np.clip((t - self.start_time) / self.duration, 0.0, 1.0)
        return float(self.offset + self.height * fraction)


class FixedResistor:
    """Constant load resistance."""

    def __init__(self, resistance: float):
        if not np.isfinite(resistance) or resistance <= 0:
            raise InvalidParameterError(f"Load resistance must be positive, got {resistance}")
        self.resistance = float(resistance)

    def resistance_at(self, t: float, temperature: float) -> float:
        return self.resistance

    def validate(self, temperature: float):
        """A fixed positive resistance is valid at any temperature."""

    def __repr__(self):
        return f"FixedResistor(resistance={self.resistance:g})"


class VariableResistor:
    """
    Variable resistor with optional temperature dependency.

    The heat port of the resistor sits at the cell temperature, which is fixed
    for a sweep, so the temperature factor is constant per model.
    """

    def __init__(self,
                 r_ref: float = DEFAULT_CONFIG['r_ref'],
                 position: Optional[Union[Callable[[float], float], float]] = None,
                 r_const: float = DEFAULT_CONFIG['r_const'],
                 t_ref: float = DEFAULT_CONFIG['t_ref'],
                 t_dep: bool = False,
                 alpha: float = DEFAULT_CONFIG['alpha'],
                 enforce_bounds: bool = True):
        """
        Args:
            r_ref: Resistance at t_ref when fully closed (pos = 1) [Ω]
            position: Wiper position schedule f(t), or a constant position
            r_const: Constant resistance between the pins [Ω]
            t_ref: Reference temperature [K]
            t_dep: Enable temperature dependency
            alpha: Temperature coefficient of resistance [1/K]
            enforce_bounds: Clamp the wiper position to [0, 1]
        """
        if not np.isfinite(r_const) or r_const <= 0:
            raise InvalidParameterError(f"r_const must be positive, got {r_const}")
        if not np.isfinite(r_ref) or r_ref < 0:
            raise InvalidParameterError(f"r_ref must be non-negative, got {r_ref}")

        if position is None:
            position = Ramp()
        elif not callable(position):
            constant = float(position)
            position = lambda t: constant

        self.r_ref = float(r_ref)
        self.r_const = float(r_const)
        self.t_ref = float(t_ref)
        self.t_dep = t_dep
        self.alpha = float(alpha)
        self.enforce_bounds = enforce_bounds
        self.position = position

    def temperature_factor(self, temperature: float) -> float:
        if not self.t_dep:
            return 1.0
        return 1.0 + self.alpha * (temperature - self.t_ref)

    def position_at(self, t: float) -> float:
        pos = float(self.position(t))
        if self.enforce_bounds:
            pos = min(max(pos, 0.0), 1.0)
        return pos

    def resistance(self, pos: float, temperature: float) -> float:
        """Resistance [Ω] at wiper position pos and heat-port temperature."""
        value = self.r_const + pos * self.r_ref * self.temperature_factor(temperature)
        if value <= 0:
            raise InvalidParameterError(
                f"Load resistance resolved to {value:g} Ω (pos={pos:g}, T={temperature:g} K)")
        return value

    def resistance_at(self, t: float, temperature: float) -> float:
        return self.resistance(self.position_at(t), temperature)

    def validate(self, temperature: float):
        """Check that every wiper position in [0, 1] gives a positive resistance."""
        if not self.enforce_bounds:
            return
        # R is linear in pos, so the endpoints bound it
        self.resistance(0.0, temperature)
        self.resistance(1.0, temperature)
        logger.debug("%r valid at T=%g K: R in [%g, %g] Ω", self, temperature,
                     self.resistance(0.0, temperature), self.resistance(1.0, temperature))

    def __repr__(self):
        return (f"VariableResistor(r_ref={self.r_ref:g}, r_const={self.r_const:g}, "
                f"t_dep={self.t_dep})")
