#!/usr/bin/env python3
"""
IV Sweep Engine
===============

Traces an IV curve by solving the single-diode circuit at every sample of a
load schedule. Each solve is warm-started from the previous node voltage, so
a sweep is a sequential fold over the sample index.

Schedules:
- solve_iv_curve: wiper of a variable resistor ramped from 0 to 1 over the
  sweep duration, light current taken from the model at each sample time
- sweep_load_resistances: explicit list of load resistances at a fixed time
- SweepEngine.run: any (time, light current, load resistance) sequence

Failure policy:
- 'raise' (default): the first sample that fails to converge aborts the sweep
- 'continue': failed samples are kept as NaN points flagged converged=False
"""

import logging
import math
import time as wallclock
from typing import Dict, Iterator, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from config import DEFAULT_CONFIG, FAILURE_POLICIES
from .circuit_model import CircuitModel
from .errors import ConvergenceError, InvalidParameterError, SweepTimeoutError
from .load import FixedResistor, Ramp, VariableResistor
from .operating_point import OperatingPoint, OperatingPointSolver

logger = logging.getLogger(__name__)

CSV_COLUMNS = ['time', 'voltage', 'current']


class IVCurve:
    """
    Ordered sequence of operating points.

    Order is the sweep order; the curve is a trajectory, not a set.
    """

    def __init__(self, points: Sequence[OperatingPoint]):
        self.points: List[OperatingPoint] = list(points)

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[OperatingPoint]:
        return iter(self.points)

    def __getitem__(self, index):
        return self.points[index]

    def _column(self, name: str) -> np.ndarray:
        return np.array([getattr(p, name) for p in self.points], dtype=float)

    @property
    def time(self) -> np.ndarray:
        return self._column('time')

    @property
    def voltage(self) -> np.ndarray:
        return self._column('voltage')

    @property
    def current(self) -> np.ndarray:
        return self._column('current')

    @property
    def power(self) -> np.ndarray:
        return self.voltage * self.current

    @property
    def load_resistance(self) -> np.ndarray:
        return self._column('load_resistance')

    @property
    def converged(self) -> np.ndarray:
        return np.array([p.converged for p in self.points], dtype=bool)

    @property
    def failed_indices(self) -> List[int]:
        return [i for i, p in enumerate(self.points) if not p.converged]

    def to_records(self) -> List[Dict[str, float]]:
        """[{time, voltage, current}, ...] in sweep order"""
        return [{'time': p.time, 'voltage': p.voltage, 'current': p.current}
                for p in self.points]

    def to_dataframe(self, detailed: bool = False) -> pd.DataFrame:
        """
        Tabular view of the curve.

        Args:
            detailed: Include solver diagnostics next to time/voltage/current
        """
        if not detailed:
            return pd.DataFrame(self.to_records(), columns=CSV_COLUMNS)

        return pd.DataFrame({
            'time': self.time,
            'voltage': self.voltage,
            'current': self.current,
            'power': self.power,
            'node_voltage': self._column('node_voltage'),
            'load_resistance': self.load_resistance,
            'light_current': self._column('light_current'),
            'diode_power': self._column('diode_power'),
            'iterations': [p.iterations for p in self.points],
            'residual': self._column('residual'),
            'converged': self.converged,
        })

    def to_csv(self, path, detailed: bool = False):
        self.to_dataframe(detailed=detailed).to_csv(path, index=False)

    def __repr__(self):
        return f"IVCurve({len(self.points)} points, {len(self.failed_indices)} failed)"


class SweepEngine:
    """
    Drives an OperatingPointSolver over a load schedule.

    A fresh engine (and solver) per sweep keeps concurrent sweeps free of
    shared mutable state; only the CircuitModel is shared.
    """

    def __init__(self,
                 model: CircuitModel,
                 warm_start: bool = DEFAULT_CONFIG['warm_start'],
                 on_failure: str = DEFAULT_CONFIG['on_failure'],
                 timeout: Optional[float] = DEFAULT_CONFIG['timeout'],
                 solver: Optional[OperatingPointSolver] = None,
                 **solver_options):
        """
        Args:
            model: Circuit parameters
            warm_start: Start each solve from the previous solution
            on_failure: 'raise' or 'continue'
            timeout: Wall-clock budget for one sweep [s], None for no limit
            solver: Pre-built solver; otherwise one is built from solver_options
            **solver_options: abs_tol, rel_tol, max_iterations, max_step_halvings
        """
        if on_failure not in FAILURE_POLICIES:
            raise InvalidParameterError(
                f"on_failure must be one of {FAILURE_POLICIES}, got {on_failure!r}")
        if timeout is not None and timeout <= 0:
            raise InvalidParameterError(f"timeout must be positive, got {timeout}")

        self.model = model
        self.warm_start = warm_start
        self.on_failure = on_failure
        self.timeout = timeout
        self.solver = solver if solver is not None else OperatingPointSolver(model, **solver_options)

    def run(self,
            times: Sequence[float],
            light_currents: Sequence[float],
            load_resistances: Sequence[float]) -> IVCurve:
        """
        Solve every (time, light current, load resistance) sample in order.

        Returns:
            IVCurve with one point per sample

        Raises:
            ConvergenceError: on the first failure when on_failure='raise'
            SweepTimeoutError: if the wall-clock budget is exceeded
        """
        if not (len(times) == len(light_currents) == len(load_resistances)):
            raise InvalidParameterError(
                f"Sample sequences differ in length: {len(times)} times, "
                f"{len(light_currents)} light currents, {len(load_resistances)} resistances")

        started = wallclock.monotonic()
        points = []
        guess = 0.0

        for index, (t, i_l, r_load) in enumerate(zip(times, light_currents, load_resistances)):
            if self.timeout is not None and wallclock.monotonic() - started > self.timeout:
                raise SweepTimeoutError(self.timeout, index)

            try:
                point = self.solver.solve(float(i_l), float(r_load), time=float(t),
                                          initial_guess=guess if self.warm_start else 0.0)
            except ConvergenceError as e:
                if self.on_failure == 'raise':
                    logger.error("Sweep aborted at sample %d (t=%g s): %s", index, t, e)
                    raise
                logger.warning("Sample %d (t=%g s) did not converge, recorded as failed", index, t)
                points.append(OperatingPoint.failed(float(t), float(r_load), float(i_l), e))
                continue

            points.append(point)
            guess = point.node_voltage

        curve = IVCurve(points)
        logger.info("Sweep finished: %d samples, %d failed, %.3f s",
                    len(curve), len(curve.failed_indices), wallclock.monotonic() - started)
        return curve

    def run_load(self,
                 load: Union[FixedResistor, VariableResistor],
                 times: Sequence[float]) -> IVCurve:
        """Sweep a load spec over a time grid, light current from the model."""
        temperature = self.model.temperature
        load.validate(temperature)

        times = [float(t) for t in times]
        light_currents = [self.model.light_current(t) for t in times]
        resistances = [load.resistance_at(t, temperature) for t in times]
        return self.run(times, light_currents, resistances)


def _check_options(options: Dict) -> Dict:
    engine_keys = ('warm_start', 'on_failure', 'timeout')
    solver_keys = ('abs_tol', 'rel_tol', 'max_iterations', 'max_step_halvings')
    unknown = set(options) - set(engine_keys) - set(solver_keys)
    if unknown:
        raise TypeError(f"Unexpected sweep options: {sorted(unknown)}")
    return options


def solve_iv_curve(model: CircuitModel,
                   sweep_duration: float = DEFAULT_CONFIG['sweep_duration'],
                   num_samples: int = DEFAULT_CONFIG['num_samples'],
                   r_ref: float = DEFAULT_CONFIG['r_ref'],
                   r_const: float = DEFAULT_CONFIG['r_const'],
                   t_dep: bool = False,
                   alpha: float = DEFAULT_CONFIG['alpha'],
                   **options) -> IVCurve:
    """
    Trace an IV curve by ramping a variable resistor from R_const to R_const + R_ref.

    The wiper position ramps linearly from 0 to 1 over sweep_duration and is
    sampled on a uniform grid of num_samples times starting at t = 0.

    Args:
        model: Circuit parameters
        sweep_duration: Ramp duration [s]
        num_samples: Number of sample times
        r_ref: Variable part of the load resistance [Ω]
        r_const: Constant part of the load resistance [Ω]
        t_dep: Temperature-dependent load
        alpha: Temperature coefficient of the load [1/K]
        **options: warm_start, on_failure, timeout and solver tolerances

    Returns:
        IVCurve
    """
    if sweep_duration <= 0:
        raise InvalidParameterError(f"sweep_duration must be positive, got {sweep_duration}")
    if num_samples < 2:
        raise InvalidParameterError(f"num_samples must be at least 2, got {num_samples}")

    options = _check_options(options)
    load = VariableResistor(r_ref=r_ref, r_const=r_const, t_dep=t_dep, alpha=alpha,
                            position=Ramp(height=1.0, duration=sweep_duration))
    times = np.linspace(0.0, sweep_duration, num_samples)

    logger.info("Ramping %r over %g s in %d samples", load, sweep_duration, num_samples)
    return SweepEngine(model, **options).run_load(load, times)


def sweep_load_resistances(model: CircuitModel,
                           resistances: Sequence[float],
                           time: float = 0.0,
                           **options) -> IVCurve:
    """
    Solve the circuit for each load resistance at a fixed light current.

    Args:
        model: Circuit parameters
        resistances: Load resistances [Ω], in sweep order
        time: Time at which the light current is taken [s]
        **options: warm_start, on_failure, timeout and solver tolerances

    Returns:
        IVCurve, every point stamped with the same time
    """
    options = _check_options(options)
    resistances = [float(r) for r in resistances]
    for r in resistances:
        if not math.isfinite(r) or r <= 0:
            raise InvalidParameterError(f"Load resistance must be positive, got {r}")

    light_current = model.light_current(time)
    n = len(resistances)
    return SweepEngine(model, **options).run([time] * n, [light_current] * n, resistances)
