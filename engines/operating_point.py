#!/usr/bin/env python3
"""
Operating Point Solver
======================

Solves the single-diode circuit for one (light current, load resistance)
pair.

Circuit topology:

        +----------+---------+---------[R_ser]---+---- pos
        |          |         |                   |
      I_L ^     D  v      [R_sh]              [R_load]
        |          |         |                   |
        +----------+---------+-------------------+---- neg

The current source, diode and shunt share the internal node voltage v. The
series resistor connects that node to the positive terminal and the load
closes the loop, so the series branch carries v / (R_ser + R_load).

Kirchhoff's current law at the internal node:

    f(v)  = I_L - I_d(v) - v/R_sh - v/(R_ser + R_load) = 0
    f'(v) = -I_d'(v) - 1/R_sh - 1/(R_ser + R_load)

f is strictly decreasing and concave. The root lies between v = 0 (f = I_L)
and the voltage at which the diode alone carries I_L, so every iterate is
kept inside that bracket, which shrinks as residual signs are observed.
Steps are halved while the residual magnitude grows.

Terminal quantities:

    I = v / (R_ser + R_load)
    V = I * R_load
"""

import logging
import math
import warnings
from dataclasses import dataclass
from typing import Optional, Tuple

from config import DEFAULT_CONFIG
from .circuit_model import CircuitModel
from .diode import DiodeEquation
from .errors import ConvergenceError, InvalidParameterError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperatingPoint:
    """A solved circuit state at one sweep sample"""
    time: float                     # s
    voltage: float                  # V, terminal
    current: float                  # A, terminal
    node_voltage: float = math.nan  # V, across diode and shunt
    load_resistance: float = math.nan   # Ω
    light_current: float = math.nan     # A
    diode_power: float = math.nan       # W, heat dissipated in the diode
    iterations: int = 0
    residual: float = math.nan      # A, f(v) at the solution
    converged: bool = True

    @property
    def power(self) -> float:
        """Power delivered to the load [W]"""
        return self.voltage * self.current

    @classmethod
    def failed(cls, time: float, load_resistance: float, light_current: float,
               error: Optional[ConvergenceError] = None) -> 'OperatingPoint':
        """Sentinel for a sample that did not converge"""
        return cls(time=time,
                   voltage=math.nan,
                   current=math.nan,
                   node_voltage=math.nan if error is None or error.voltage is None
                   else error.voltage,
                   load_resistance=load_resistance,
                   light_current=light_current,
                   iterations=0 if error is None else error.iterations,
                   residual=math.nan if error is None or error.residual is None
                   else error.residual,
                   converged=False)


class OperatingPointSolver:
    """
    Damped Newton-Raphson solver for the internal node voltage.

    One instance per model; holds no per-solve state, so a sweep can reuse
    it for every sample.
    """

    def __init__(self,
                 model: CircuitModel,
                 abs_tol: Optional[float] = None,
                 rel_tol: Optional[float] = None,
                 max_iterations: Optional[int] = None,
                 max_step_halvings: Optional[int] = None):
        """
        Args:
            model: Circuit parameters
            abs_tol: Residual tolerance [A]
            rel_tol: Relative step tolerance
            max_iterations: Newton iteration cap
            max_step_halvings: Damping budget per Newton step
        """
        self.model = model
        self.diode = DiodeEquation(model)
        self.shunt_conductance = 1.0 / model.shunt_resistance

        self.abs_tol = DEFAULT_CONFIG['abs_tol'] if abs_tol is None else abs_tol
        self.rel_tol = DEFAULT_CONFIG['rel_tol'] if rel_tol is None else rel_tol
        self.max_iterations = (DEFAULT_CONFIG['max_iterations']
                               if max_iterations is None else max_iterations)
        self.max_step_halvings = (DEFAULT_CONFIG['max_step_halvings']
                                  if max_step_halvings is None else max_step_halvings)

        if self.abs_tol <= 0 or self.rel_tol < 0:
            raise InvalidParameterError("Tolerances must be positive")
        if self.max_iterations < 1:
            raise InvalidParameterError("max_iterations must be at least 1")

    def branch_conductance(self, load_resistance: float) -> float:
        """Conductance of the series resistor + load branch [S]"""
        return 1.0 / (self.model.series_resistance + load_resistance)

    def residual(self, v: float, light_current: float, load_resistance: float) -> float:
        """KCL residual f(v) at the internal node [A]"""
        return (light_current
                - self.diode.current(v)
                - v * self.shunt_conductance
                - v * self.branch_conductance(load_resistance))

    def jacobian(self, v: float, load_resistance: float) -> float:
        """df/dv [A/V]"""
        return (-self.diode.derivative(v)
                - self.shunt_conductance
                - self.branch_conductance(load_resistance))

    def bracket(self, light_current: float) -> Tuple[float, float]:
        """
        Node voltage interval [V] that contains the solution.

        f(0) = I_L >= 0, and at the voltage where the diode alone carries I_L
        the resistive terms make f <= 0.
        """
        return 0.0, self.diode.voltage_at(light_current)

    def _newton(self, light_current: float, load_resistance: float,
                v0: float) -> Tuple[float, float, int]:
        """Run safeguarded, damped Newton from v0. Returns (v, f(v), iterations)."""
        lo, hi = self.bracket(light_current)
        v = min(max(v0, lo), hi)
        f = self.residual(v, light_current, load_resistance)
        if abs(f) < self.abs_tol:
            return v, f, 0

        for iteration in range(1, self.max_iterations + 1):
            # f is decreasing, so its sign tells which side of the root v is on
            if f > 0:
                lo = v
            else:
                hi = v
            # Root pinned to within rel_tol by residual signs
            if hi - lo <= self.rel_tol * abs(v):
                return v, f, iteration - 1

            trial = v - f / self.jacobian(v, load_resistance)
            trial = min(max(trial, lo), hi)
            if trial == v:
                trial = 0.5 * (lo + hi)
            step = trial - v

            f_trial = self.residual(trial, light_current, load_resistance)
            halvings = 0
            while abs(f_trial) > abs(f) and halvings < self.max_step_halvings:
                step *= 0.5
                trial = v + step
                f_trial = self.residual(trial, light_current, load_resistance)
                halvings += 1

            if halvings:
                logger.debug("Newton step %d damped %d times (v=%.6g V)",
                             iteration, halvings, trial)

            v, f = trial, f_trial
            if not math.isfinite(f):
                break
            if abs(f) < self.abs_tol:
                return v, f, iteration
            if abs(step) < self.rel_tol * abs(v):
                return v, f, iteration

        raise ConvergenceError(
            f"Newton iteration did not converge in {iteration} iterations "
            f"(I_L={light_current:g} A, R_load={load_resistance:g} Ω, "
            f"v={v:.6g} V, residual={f:.3g} A)",
            voltage=v, residual=f, iterations=iteration)

    def solve(self,
              light_current: float,
              load_resistance: float,
              time: float = 0.0,
              initial_guess: float = 0.0) -> OperatingPoint:
        """
        Solve for the operating point.

        Args:
            light_current: I_L [A], >= 0
            load_resistance: R_load [Ω], > 0
            time: Sample time recorded on the result [s]
            initial_guess: Starting node voltage [V]; 0 is short circuit,
                the previous solution gives a warm start

        Returns:
            OperatingPoint

        Raises:
            InvalidParameterError: for R_load <= 0 or I_L < 0
            ConvergenceError: if the iteration cap is exceeded
        """
        if not math.isfinite(load_resistance) or load_resistance <= 0:
            raise InvalidParameterError(f"Load resistance must be positive, got {load_resistance}")
        if not math.isfinite(light_current) or light_current < 0:
            raise InvalidParameterError(f"Light current must be non-negative, got {light_current}")
        if not math.isfinite(initial_guess):
            initial_guess = 0.0

        try:
            v, f, iterations = self._newton(light_current, load_resistance, initial_guess)
        except ConvergenceError as e:
            e.time = time
            raise

        if self.diode.is_saturated(v):
            warnings.warn(f"Diode exponent saturated at v = {v:.4g} V (t = {time:g} s)")

        current = v * self.branch_conductance(load_resistance)
        voltage = current * load_resistance

        logger.debug("t=%g s: R_load=%g Ω, v=%.9g V, I=%.9g A in %d iterations (|f|=%.2g A)",
                     time, load_resistance, v, current, iterations, abs(f))

        return OperatingPoint(time=time,
                              voltage=voltage,
                              current=current,
                              node_voltage=v,
                              load_resistance=load_resistance,
                              light_current=light_current,
                              diode_power=float(self.diode.loss_power(v)),
                              iterations=iterations,
                              residual=f,
                              converged=True)

    def open_circuit_voltage(self, light_current: float, initial_guess: float = 0.0) -> float:
        """
        Terminal voltage with no load connected [V].

        With the series branch open the node equation reduces to
        I_L = I_d(v) + v/R_sh, and the terminal sits at the node voltage.
        """
        if not math.isfinite(light_current) or light_current < 0:
            raise InvalidParameterError(f"Light current must be non-negative, got {light_current}")
        v, _, _ = self._newton(light_current, math.inf, initial_guess)
        return v
