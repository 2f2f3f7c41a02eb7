#!/usr/bin/env python3
"""
IV Curve Analysis
=================

Extracts the usual performance figures from a traced IV curve:
Isc, Voc, maximum power point and fill factor.

A load sweep approaches, but never reaches, short and open circuit; Isc and
Voc are taken from the sweep end points closest to those limits. Failed
(NaN) samples are ignored.
"""

from typing import Dict, Tuple

import numpy as np

from .sweep import IVCurve


def find_mpp(voltage: np.ndarray, current: np.ndarray) -> Tuple[float, float, float]:
    """
    Find maximum power point from I-V data.

    Args:
        voltage: Voltage array [V]
        current: Current array [A]

    Returns:
        (V_mpp, I_mpp, P_mpp) tuple
    """
    voltage = np.asarray(voltage, dtype=float)
    current = np.asarray(current, dtype=float)

    valid = np.isfinite(voltage) & np.isfinite(current) & (current > 0)
    if not np.any(valid):
        return 0.0, 0.0, 0.0

    valid_voltage = voltage[valid]
    valid_current = current[valid]
    power = valid_voltage * valid_current

    max_idx = int(np.argmax(power))
    return float(valid_voltage[max_idx]), float(valid_current[max_idx]), float(power[max_idx])


def extract_parameters(curve: IVCurve) -> Dict[str, float]:
    """
    Extract solar cell parameters from an IV curve.

    Returns:
        Dictionary with Isc, Voc, FF, Vmpp, Impp, Pmpp
    """
    voltage = curve.voltage
    current = curve.current
    valid = np.isfinite(voltage) & np.isfinite(current)

    if not np.any(valid):
        return {'Isc': 0.0, 'Voc': 0.0, 'FF': 0.0, 'Vmpp': 0.0, 'Impp': 0.0, 'Pmpp': 0.0}

    voltage = voltage[valid]
    current = current[valid]

    Isc = float(current[np.argmin(voltage)])
    Voc = float(np.max(voltage))

    Vmpp, Impp, Pmpp = find_mpp(voltage, current)
    FF = Pmpp / (Isc * Voc) if Isc * Voc > 0 else 0.0

    return {
        'Isc': Isc,         # A
        'Voc': Voc,         # V
        'FF': FF,           # dimensionless
        'Vmpp': Vmpp,       # V
        'Impp': Impp,       # A
        'Pmpp': Pmpp,       # W
    }
