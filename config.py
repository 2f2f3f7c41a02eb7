#!/usr/bin/env python3
"""
PVSim - Configuration & Default Parameters
==========================================

Physical constants, default single-diode parameters and solver settings
shared by every engine.

References:
- CODATA 2018 exact values for q and k
- Sandia PVPMC, "Single Diode Equivalent Circuit Models"
"""

from typing import Dict, Any

# =============================================================================
# PHYSICAL CONSTANTS
# =============================================================================

Q = 1.602176634e-19     # Elementary charge [C]
KB = 1.380649e-23       # Boltzmann constant [J/K]

T_CELL = 300.0          # Fixed cell temperature [K]
T_REF = 300.15          # Reference temperature of the load resistor [K]

# Cap on the diode exponent argument v/(n*Vt); exp(80) ~ 5.5e34
EXP_ARG_LIMIT = 80.0

# =============================================================================
# DEFAULT MODEL PARAMETERS
# =============================================================================

DEFAULT_MODEL_PARAMS = {
    'saturation_current': 1e-6,     # A
    'ideality_factor': 1.0,         # dimensionless
    'shunt_resistance': 1e5,        # Ω
    'series_resistance': 1e-2,      # Ω
    'temperature': T_CELL,          # K
}

# =============================================================================
# SOLVER / SWEEP CONFIGURATION
# =============================================================================

DEFAULT_CONFIG = {
    # Newton-Raphson
    'abs_tol': 1e-9,                # A, |f(v)| bound
    'rel_tol': 1e-9,                # |Δv| < rel_tol * |v|
    'max_iterations': 50,
    'max_step_halvings': 60,        # damping budget per Newton step

    # Sweep
    'warm_start': True,
    'on_failure': 'raise',          # 'raise' | 'continue'
    'timeout': None,                # s, wall-clock budget per sweep
    'sweep_duration': 1.0,          # s
    'num_samples': 100,

    # Light current interpolation
    'out_of_range': 'raise',        # 'raise' | 'clamp'

    # Variable resistor load
    'r_const': 1e-3,                # Ω
    'r_ref': 1e5,                   # Ω
    't_ref': T_REF,                 # K
    'alpha': 1e-3,                  # 1/K
}

FAILURE_POLICIES = ('raise', 'continue')
OUT_OF_RANGE_POLICIES = ('raise', 'clamp')


def solver_options(**overrides) -> Dict[str, Any]:
    """Return DEFAULT_CONFIG merged with the given overrides (None values ignored)."""

    unknown = set(overrides) - set(DEFAULT_CONFIG)
    if unknown:
        raise KeyError(f"Unknown configuration keys: {sorted(unknown)}")

    options = DEFAULT_CONFIG.copy()
    options.update({key: value for key, value in overrides.items() if value is not None})
    return options


if __name__ == "__main__":
    print("PVSim - Configuration Test")
    print("=" * 40)

    vt = KB * T_CELL / Q
    print(f"Thermal voltage at {T_CELL} K: {vt * 1000:.3f} mV")
    print(f"Default model: {DEFAULT_MODEL_PARAMS}")
    print(f"Solver tolerances: abs={DEFAULT_CONFIG['abs_tol']}, rel={DEFAULT_CONFIG['rel_tol']}")
