#!/usr/bin/env python3
"""
Shockley Diode Equation
=======================

Diode branch of the single-diode model:

    I_d(v) = I_s * (exp(v / (n*Vt)) - 1),   Vt = k*T/q

The exponent argument is capped at EXP_ARG_LIMIT. Past the cap the
exponential is continued along its tangent, so current and derivative stay
finite, continuous and increasing in v.
"""

from typing import Union

import numpy as np

from config import EXP_ARG_LIMIT
from .circuit_model import CircuitModel

ArrayLike = Union[float, np.ndarray]


class DiodeEquation:
    """Shockley diode current and its derivative for a given CircuitModel."""

    def __init__(self, model: CircuitModel):
        self.saturation_current = model.saturation_current
        self.ideality_factor = model.ideality_factor
        self.thermal_voltage = model.thermal_voltage
        # n*Vt is fixed for the whole sweep
        self.nVt = self.ideality_factor * self.thermal_voltage
        self._exp_limit = np.exp(EXP_ARG_LIMIT)

    def _exp(self, v: ArrayLike) -> ArrayLike:
        x = np.asarray(v, dtype=float) / self.nVt
        capped = np.minimum(x, EXP_ARG_LIMIT)
        value = np.where(x > EXP_ARG_LIMIT,
                         self._exp_limit * (1.0 + x - EXP_ARG_LIMIT),
                         np.exp(capped))
        return value if value.ndim else float(value)

    def _exp_slope(self, v: ArrayLike) -> ArrayLike:
        x = np.asarray(v, dtype=float) / self.nVt
        value = np.exp(np.minimum(x, EXP_ARG_LIMIT))
        return value if value.ndim else float(value)

    def current(self, v: ArrayLike) -> ArrayLike:
        """Diode current [A] at junction voltage v [V]."""
        return self.saturation_current * (self._exp(v) - 1.0)

    def derivative(self, v: ArrayLike) -> ArrayLike:
        """dI_d/dv [A/V], the Jacobian entry for Newton iteration."""
        return self.saturation_current * self._exp_slope(v) / self.nVt

    def voltage_at(self, i: float) -> float:
        """Junction voltage [V] at which the diode carries current i [A], i > -I_s."""
        ratio = i / self.saturation_current + 1.0
        if ratio <= 0:
            raise ValueError(f"Diode current cannot reach {i} A")
        if ratio > self._exp_limit:
            return self.nVt * (EXP_ARG_LIMIT + ratio / self._exp_limit - 1.0)
        return self.nVt * float(np.log(ratio))

    def is_saturated(self, v: float) -> bool:
        """True when v/(n*Vt) exceeds the exponent cap."""
        return v / self.nVt > EXP_ARG_LIMIT

    def loss_power(self, v: ArrayLike) -> ArrayLike:
        """Power dissipated in the diode [W], delivered to its heat port."""
        return v * self.current(v)
