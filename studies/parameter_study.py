"""
Parameter Study for Single-Diode IV Curves

Sweeps one model parameter (e.g. series resistance) across a list of values
and traces one IV curve per value. Each curve is an independent sweep with
its own model and solver, so the runs are distributed over worker processes
without any shared state.
"""

import logging
from concurrent.futures import ProcessPoolExecutor
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from config import DEFAULT_MODEL_PARAMS
from engines.circuit_model import build_model
from engines.errors import InvalidParameterError, PVSimError
from engines.iv_analysis import extract_parameters
from engines.sweep import IVCurve, sweep_load_resistances

logger = logging.getLogger(__name__)

STUDY_PARAMETERS = (
    'saturation_current',
    'ideality_factor',
    'shunt_resistance',
    'series_resistance',
    'temperature',
)

DEFAULT_RESISTANCES = np.logspace(-2, 4, 100)


def _run_single(model_kwargs: Dict[str, Any],
                resistances: Sequence[float],
                time: float,
                sweep_options: Dict[str, Any]) -> IVCurve:
    """Worker entry point: build a private model and trace one curve."""
    model = build_model(**model_kwargs)
    return sweep_load_resistances(model, resistances, time=time, **sweep_options)


class ParameterStudy:
    """
    One IV sweep per value of a single model parameter.

    Example:
        study = ParameterStudy(base, 'series_resistance', [1e-3, 1e-2, 1e-1])
        table = study.run()
    """

    def __init__(self,
                 base_parameters: Dict[str, Any],
                 parameter: str,
                 values: Sequence[float],
                 resistances: Optional[Sequence[float]] = None,
                 time: float = 0.0,
                 max_workers: Optional[int] = None,
                 **sweep_options):
        """
        Args:
            base_parameters: build_model keyword arguments; light_current_samples
                and time_samples are required, the rest default to
                DEFAULT_MODEL_PARAMS
            parameter: Name of the parameter to vary
            values: Values of that parameter, one sweep each
            resistances: Load resistances of every sweep [Ω]
            time: Time at which the light current is taken [s]
            max_workers: Worker processes; 1 runs in-process
            **sweep_options: Passed to sweep_load_resistances
        """
        if parameter not in STUDY_PARAMETERS:
            raise InvalidParameterError(
                f"Unknown study parameter {parameter!r}. Available: {list(STUDY_PARAMETERS)}")
        if len(values) == 0:
            raise InvalidParameterError("At least one parameter value is required")
        for key in ('light_current_samples', 'time_samples'):
            if key not in base_parameters:
                raise InvalidParameterError(f"base_parameters is missing {key!r}")

        self.base_parameters = {**DEFAULT_MODEL_PARAMS, **base_parameters}
        self.parameter = parameter
        self.values = [float(v) for v in values]
        self.resistances = [float(r) for r in
                            (DEFAULT_RESISTANCES if resistances is None else resistances)]
        self.time = time
        self.max_workers = max_workers
        self.sweep_options = sweep_options

        # Fail on bad parameter sets before any worker starts
        for kwargs in self._model_kwargs():
            build_model(**kwargs)

        self.curves: Dict[float, IVCurve] = {}

    def _model_kwargs(self) -> List[Dict[str, Any]]:
        return [{**self.base_parameters, self.parameter: value} for value in self.values]

    def run(self) -> pd.DataFrame:
        """
        Trace every curve and tabulate its extracted parameters.

        Returns:
            DataFrame with one row per value: the parameter, Isc, Voc, FF,
            Vmpp, Impp, Pmpp and the number of failed samples
        """
        jobs = self._model_kwargs()
        n = len(jobs)
        args = ([self.resistances] * n, [self.time] * n, [self.sweep_options] * n)

        if self.max_workers == 1:
            curves = list(map(_run_single, jobs, *args))
        else:
            with ProcessPoolExecutor(max_workers=self.max_workers) as executor:
                curves = list(executor.map(_run_single, jobs, *args))

        rows = []
        for value, curve in zip(self.values, curves):
            self.curves[value] = curve
            row = {self.parameter: value, **extract_parameters(curve),
                   'failed': len(curve.failed_indices)}
            rows.append(row)
            logger.info("%s=%g: Voc=%.4f V, Pmpp=%.4f W", self.parameter, value,
                        row['Voc'], row['Pmpp'])

        return pd.DataFrame(rows)


def run_parameter_study(base_parameters: Dict[str, Any],
                        parameter: str,
                        values: Sequence[float],
                        **kwargs) -> pd.DataFrame:
    """Convenience wrapper around ParameterStudy.run"""
    try:
        return ParameterStudy(base_parameters, parameter, values, **kwargs).run()
    except PVSimError:
        logger.exception("Parameter study over %s failed", parameter)
        raise
