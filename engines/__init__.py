#!/usr/bin/env python3
"""
PVSim - Engine Package
======================

Single-diode equivalent-circuit engines:
- circuit_model: model parameters and light-current profile
- diode: Shockley diode equation
- load: fixed and variable resistor loads
- operating_point: damped Newton solver for one circuit state
- sweep: IV curve tracing over a load schedule
- iv_analysis: Isc, Voc, MPP and fill factor extraction

All engines share the constants and solver defaults of the parent config
module.
"""

from typing import List

from .errors import (PVSimError, InvalidParameterError, OutOfRangeError,
                     ConvergenceError, SweepTimeoutError)
from .circuit_model import CircuitModel, LightCurrentProfile, build_model
from .diode import DiodeEquation
from .load import FixedResistor, VariableResistor, Ramp
from .operating_point import OperatingPoint, OperatingPointSolver
from .sweep import IVCurve, SweepEngine, solve_iv_curve, sweep_load_resistances
from .iv_analysis import find_mpp, extract_parameters

__version__ = "0.1.0"
__all__ = [
    "PVSimError",
    "InvalidParameterError",
    "OutOfRangeError",
    "ConvergenceError",
    "SweepTimeoutError",
    "CircuitModel",
    "LightCurrentProfile",
    "build_model",
    "DiodeEquation",
    "FixedResistor",
    "VariableResistor",
    "Ramp",
    "OperatingPoint",
    "OperatingPointSolver",
    "IVCurve",
    "SweepEngine",
    "solve_iv_curve",
    "sweep_load_resistances",
    "find_mpp",
    "extract_parameters",
]

ENGINES = ["circuit_model", "diode", "load", "operating_point", "sweep", "iv_analysis"]


def get_available_engines() -> List[str]:
    """Return list of engine modules"""
    return ENGINES.copy()
