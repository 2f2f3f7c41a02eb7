#!/usr/bin/env python3
"""
Circuit Model for the Single-Diode Equivalent Circuit
=====================================================

Holds the five single-diode parameters and the light-generated current
profile of a PV cell/module:

    I_L(t) -> current source
    I_s, n -> diode
    R_sh   -> shunt resistance
    R_ser  -> series resistance

The cell temperature is fixed (a constant-temperature heat source), so the
thermal voltage Vt = k*T/q is a property of the model.

References:
- Sandia PVPMC, "Single Diode Equivalent Circuit Models"
  https://pvpmc.sandia.gov/modeling-guide/2-dc-module-iv/single-diode-equivalent-circuit-models/
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.interpolate import interp1d

from config import Q, KB, T_CELL, DEFAULT_CONFIG, OUT_OF_RANGE_POLICIES
from .errors import InvalidParameterError, OutOfRangeError

logger = logging.getLogger(__name__)


class LightCurrentProfile:
    """
    Light-generated current as a function of time.

    Either sampled (time, current) pairs, interpolated piecewise-linearly,
    or an arbitrary callable f(t) -> current.
    """

    def __init__(self,
                 times: Optional[Sequence[float]] = None,
                 currents: Optional[Sequence[float]] = None,
                 function: Optional[Callable[[float], float]] = None,
                 out_of_range: str = DEFAULT_CONFIG['out_of_range']):
        """
        Args:
            times: Sample times [s], strictly increasing
            currents: Light current at each sample time [A], >= 0
            function: Callable used instead of samples
            out_of_range: 'raise' or 'clamp' outside the sampled span
        """
        if out_of_range not in OUT_OF_RANGE_POLICIES:
            raise InvalidParameterError(
                f"out_of_range must be one of {OUT_OF_RANGE_POLICIES}, got {out_of_range!r}")
        self.out_of_range = out_of_range

        if function is not None:
            if times is not None or currents is not None:
                raise InvalidParameterError("Give either samples or a function, not both")
            self._function = function
            self.times = None
            self.currents = None
            self._interpolator = None
            return

        if times is None or currents is None:
            raise InvalidParameterError("Both times and currents are required")

        t = np.array(times, dtype=float).ravel()
        i = np.array(currents, dtype=float).ravel()

        if len(t) != len(i):
            raise InvalidParameterError(
                f"light current and time samples must have the same length "
                f"({len(i)} != {len(t)})")
        if len(t) == 0:
            raise InvalidParameterError("At least one light current sample is required")
        if not (np.all(np.isfinite(t)) and np.all(np.isfinite(i))):
            raise InvalidParameterError("Light current samples must be finite")
        if np.any(i < 0):
            raise InvalidParameterError("Light current samples must be non-negative")
        if np.any(np.diff(t) <= 0):
            raise InvalidParameterError("Time samples must be strictly increasing")

        t.setflags(write=False)
        i.setflags(write=False)
        self.times = t
        self.currents = i
        self._function = None

        if len(t) > 1:
            self._interpolator = interp1d(t, i, kind='linear', assume_sorted=True)
        else:
            self._interpolator = None

    @classmethod
    def constant(cls, current: float) -> 'LightCurrentProfile':
        """Time-independent light current."""
        if current < 0:
            raise InvalidParameterError("Light current must be non-negative")
        value = float(current)
        return cls(function=lambda t: value)

    @property
    def span(self) -> Optional[Tuple[float, float]]:
        """Sampled time span, or None for function profiles."""
        if self.times is None:
            return None
        return float(self.times[0]), float(self.times[-1])

    def __call__(self, t: float) -> float:
        if self._function is not None:
            value = float(self._function(t))
            if value < 0:
                raise InvalidParameterError(f"Light current function returned {value} A at t = {t} s")
            return value

        t0, t1 = self.span
        if t < t0 or t > t1:
            if self.out_of_range == 'raise':
                raise OutOfRangeError(t, (t0, t1))
            return float(self.currents[0] if t < t0 else self.currents[-1])

        if self._interpolator is None:
            return float(self.currents[0])
        return float(self._interpolator(t))


@dataclass(frozen=True)
class CircuitModel:
    """
    Single-diode model parameters at a fixed cell temperature.

    Immutable; safe to share by reference between independent sweeps.
    """
    saturation_current: float       # A
    ideality_factor: float          # dimensionless
    shunt_resistance: float         # Ω
    series_resistance: float        # Ω
    light_current_profile: LightCurrentProfile
    temperature: float = T_CELL     # K

    def __post_init__(self):
        _validate_parameters(self.saturation_current, self.ideality_factor,
                             self.shunt_resistance, self.series_resistance,
                             self.temperature)

    @property
    def thermal_voltage(self) -> float:
        """Vt = k*T/q [V]"""
        return KB * self.temperature / Q

    def light_current(self, t: float) -> float:
        """Interpolated light-generated current at time t [A]."""
        return self.light_current_profile(t)


def _validate_parameters(saturation_current: float,
                         ideality_factor: float,
                         shunt_resistance: float,
                         series_resistance: float,
                         temperature: float):
    positive = {
        'saturation_current': saturation_current,
        'ideality_factor': ideality_factor,
        'shunt_resistance': shunt_resistance,
        'temperature': temperature,
    }
    for name, value in positive.items():
        if not np.isfinite(value) or value <= 0:
            raise InvalidParameterError(f"{name} must be positive, got {value}")

    if not np.isfinite(series_resistance) or series_resistance < 0:
        raise InvalidParameterError(
            f"series_resistance must be non-negative, got {series_resistance}")


def build_model(saturation_current: float,
                ideality_factor: float,
                shunt_resistance: float,
                series_resistance: float,
                light_current_samples: Union[Sequence[float], np.ndarray],
                time_samples: Union[Sequence[float], np.ndarray],
                temperature: float = T_CELL,
                out_of_range: str = DEFAULT_CONFIG['out_of_range']) -> CircuitModel:
    """
    Build a CircuitModel from parameters and sampled light current.

    Args:
        saturation_current: Diode saturation current I_s [A]
        ideality_factor: Diode ideality factor n
        shunt_resistance: R_sh [Ω]
        series_resistance: R_ser [Ω], may be zero
        light_current_samples: I_L at each time sample [A]
        time_samples: Sample times [s], strictly increasing
        temperature: Cell temperature [K]
        out_of_range: 'raise' or 'clamp' for queries outside the samples

    Returns:
        CircuitModel

    Raises:
        InvalidParameterError: on any invalid input; no model is returned
    """
    # Scalars first so a bad parameter is reported before sample errors
    _validate_parameters(saturation_current, ideality_factor, shunt_resistance,
                         series_resistance, temperature)

    if len(light_current_samples) != len(time_samples):
        raise InvalidParameterError(
            f"light_current_samples and time_samples must have the same length "
            f"({len(light_current_samples)} != {len(time_samples)})")

    profile = LightCurrentProfile(times=time_samples,
                                  currents=light_current_samples,
                                  out_of_range=out_of_range)

    model = CircuitModel(saturation_current=float(saturation_current),
                         ideality_factor=float(ideality_factor),
                         shunt_resistance=float(shunt_resistance),
                         series_resistance=float(series_resistance),
                         light_current_profile=profile,
                         temperature=float(temperature))

    logger.debug("Built model: I_s=%g A, n=%g, R_sh=%g Ω, R_ser=%g Ω, T=%g K, %d samples",
                 model.saturation_current, model.ideality_factor, model.shunt_resistance,
                 model.series_resistance, model.temperature, len(profile.times))
    return model
