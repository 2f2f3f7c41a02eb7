#!/usr/bin/env python3
"""
PVSim Studies Package
=====================

Batch runs built on the engines:
- parameter_study: one IV sweep per value of a model parameter, run in
  parallel worker processes
"""

from .parameter_study import ParameterStudy, run_parameter_study, STUDY_PARAMETERS

__version__ = "0.1.0"
__all__ = [
    "ParameterStudy",
    "run_parameter_study",
    "STUDY_PARAMETERS",
]
