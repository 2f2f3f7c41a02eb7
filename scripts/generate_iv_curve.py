#!/usr/bin/env python3
"""
IV Curve Generator
==================

Traces the IV curve of the default single-diode module twice:
- log-spaced load resistances at constant light current
- variable-resistor wiper ramp over a light-current time series

Output: data/iv_curve_sweep.csv, data/iv_curve_ramp.csv

Usage: python scripts/generate_iv_curve.py [output_dir]
"""

import logging
import os
import sys

import numpy as np

# Add parent directory to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import DEFAULT_MODEL_PARAMS, solver_options
from engines.circuit_model import build_model
from engines.iv_analysis import extract_parameters
from engines.sweep import solve_iv_curve, sweep_load_resistances


def print_parameters(title, params):
    print(f"\n{title}")
    print(f"   Isc:  {params['Isc']:.4f} A")
    print(f"   Voc:  {params['Voc']:.4f} V")
    print(f"   Pmpp: {params['Pmpp']:.4f} W at {params['Vmpp']:.4f} V")
    print(f"   FF:   {params['FF']:.3f}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    output_dir = sys.argv[1] if len(sys.argv) > 1 else os.path.join(
        os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'data')
    os.makedirs(output_dir, exist_ok=True)

    print("Single-Diode IV Curve Generator")
    print("=" * 40)

    settings = solver_options(r_ref=10.0, on_failure='continue')

    # 1. Constant 3 A light current, log-spaced load
    constant = build_model(light_current_samples=[3.0, 3.0], time_samples=[0.0, 1.0],
                           **DEFAULT_MODEL_PARAMS)
    resistances = np.logspace(-2, 4, settings['num_samples'])
    sweep = sweep_load_resistances(constant, resistances)
    print_parameters("1. Log-spaced load sweep (I_L = 3 A):", extract_parameters(sweep))

    # 2. Wiper ramp with a slowly dimming light current
    duration = settings['sweep_duration']
    times = np.linspace(0.0, duration, 11)
    dimming = build_model(light_current_samples=np.linspace(3.0, 2.5, len(times)),
                          time_samples=times, **DEFAULT_MODEL_PARAMS)
    ramp = solve_iv_curve(dimming, sweep_duration=duration,
                          num_samples=settings['num_samples'],
                          r_ref=settings['r_ref'], on_failure=settings['on_failure'])
    print_parameters("2. Wiper ramp (I_L 3.0 -> 2.5 A, R_ref = 10 Ω):", extract_parameters(ramp))
    if ramp.failed_indices:
        print(f"   Failed samples: {ramp.failed_indices}")

    sweep_csv = os.path.join(output_dir, 'iv_curve_sweep.csv')
    ramp_csv = os.path.join(output_dir, 'iv_curve_ramp.csv')
    sweep.to_csv(sweep_csv)
    ramp.to_csv(ramp_csv, detailed=True)

    print(f"\nSaved:")
    print(f"   {sweep_csv} ({len(sweep)} points)")
    print(f"   {ramp_csv} ({len(ramp)} points)")
