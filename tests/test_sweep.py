#!/usr/bin/env python3
"""
Tests for the IV Sweep Engine and IV Analysis
=============================================

Warm-started sweeps, failure policies, export and curve parameters.
"""

import pytest
import numpy as np
import pandas as pd
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from engines.circuit_model import build_model
from engines.errors import (ConvergenceError, InvalidParameterError,
                            OutOfRangeError, SweepTimeoutError)
from engines.iv_analysis import extract_parameters, find_mpp
from engines.operating_point import OperatingPoint
from engines.sweep import (CSV_COLUMNS, IVCurve, SweepEngine,
                           solve_iv_curve, sweep_load_resistances)

RESISTANCES = np.logspace(-2, 4, 100)


def make_model(light_current=3.0, times=(0.0, 1.0), **kwargs):
    params = dict(saturation_current=1e-6, ideality_factor=1.0,
                  shunt_resistance=1e5, series_resistance=1e-2, temperature=300.0)
    params.update(kwargs)
    return build_model(light_current_samples=[light_current] * len(times),
                       time_samples=list(times), **params)


@pytest.fixture
def model():
    return make_model()


@pytest.fixture
def curve(model):
    return sweep_load_resistances(model, RESISTANCES)


class TestLoadSweep:
    """Test sweeps over explicit load resistances"""

    def test_curve_shape(self, curve):
        """Raising R_load moves along the curve from Isc towards Voc"""
        assert len(curve) == len(RESISTANCES)
        assert np.all(curve.converged)
        assert np.all(np.diff(curve.voltage) >= 0)
        assert np.all(np.diff(curve.current) <= 0)
        assert curve.current[0] == pytest.approx(3.0, rel=1e-3)
        assert curve.voltage[-1] > 0

    def test_points_in_sweep_order(self, curve):
        """Point k belongs to resistance k"""
        np.testing.assert_allclose(curve.load_resistance, RESISTANCES)
        assert np.all(curve.time == 0.0)

    def test_zero_light_current(self):
        """A dark cell sits at the origin for every load"""
        curve = sweep_load_resistances(make_model(light_current=0.0), RESISTANCES)

        assert np.all(curve.voltage == 0.0)
        assert np.all(curve.current == 0.0)

    def test_warm_start_does_not_change_result(self, model):
        warm = sweep_load_resistances(model, RESISTANCES, warm_start=True)
        cold = sweep_load_resistances(model, RESISTANCES, warm_start=False)

        np.testing.assert_allclose(warm.voltage, cold.voltage, rtol=1e-8, atol=1e-12)
        np.testing.assert_allclose(warm.current, cold.current, rtol=1e-8, atol=1e-12)

    def test_warm_start_saves_iterations(self, model):
        warm = sweep_load_resistances(model, RESISTANCES, warm_start=True)
        cold = sweep_load_resistances(model, RESISTANCES, warm_start=False)

        warm_total = sum(p.iterations for p in warm)
        cold_total = sum(p.iterations for p in cold)
        assert warm_total < cold_total

    def test_large_light_current_sweep(self):
        """Sweeps at very large light currents complete under the raise policy"""
        curve = sweep_load_resistances(make_model(light_current=1e6),
                                       np.logspace(-4, 6, 61))

        assert curve.failed_indices == []
        assert np.all(np.diff(curve.voltage) >= 0)

    def test_light_current_taken_at_time(self):
        """The fixed sweep time selects the interpolated light current"""
        model = build_model(saturation_current=1e-6, ideality_factor=1.0,
                            shunt_resistance=1e5, series_resistance=1e-2,
                            light_current_samples=[2.0, 4.0], time_samples=[0.0, 1.0])
        curve = sweep_load_resistances(model, [1e-2, 1.0], time=0.5)

        assert all(p.light_current == pytest.approx(3.0) for p in curve)
        assert all(p.time == 0.5 for p in curve)

    @pytest.mark.parametrize("bad", [[1.0, 0.0], [-1.0], [float('inf')]])
    def test_invalid_resistances(self, model, bad):
        with pytest.raises(InvalidParameterError):
            sweep_load_resistances(model, bad)

    def test_unknown_option(self, model):
        with pytest.raises(TypeError):
            sweep_load_resistances(model, RESISTANCES, tolerance=1e-3)


class TestRampSweep:
    """Test IV curves traced by ramping a variable resistor"""

    def test_ramp_curve(self, model):
        curve = solve_iv_curve(model, sweep_duration=1.0, num_samples=50)

        assert len(curve) == 50
        assert curve.time[0] == 0.0
        assert curve.time[-1] == pytest.approx(1.0)
        assert curve.load_resistance[0] == pytest.approx(1e-3)
        assert curve.load_resistance[-1] == pytest.approx(1e5 + 1e-3)
        assert np.all(np.diff(curve.voltage) >= 0)

    def test_sample_outside_light_current_span(self):
        """Sweeping past the last light current sample is an error by default"""
        model = make_model(times=(0.0, 0.5))

        with pytest.raises(OutOfRangeError) as excinfo:
            solve_iv_curve(model, sweep_duration=1.0, num_samples=11)
        assert excinfo.value.span == (0.0, 0.5)

    def test_clamped_light_current_span(self):
        """With clamping the last sample is held"""
        model = build_model(saturation_current=1e-6, ideality_factor=1.0,
                            shunt_resistance=1e5, series_resistance=1e-2,
                            light_current_samples=[3.0, 3.0], time_samples=[0.0, 0.5],
                            out_of_range='clamp')
        curve = solve_iv_curve(model, sweep_duration=1.0, num_samples=11)

        assert len(curve) == 11
        assert all(p.light_current == 3.0 for p in curve)

    def test_temperature_dependent_load(self, model):
        """T_dep scales the variable part of the load at the cell temperature"""
        curve = solve_iv_curve(model, num_samples=20, t_dep=True, alpha=1e-3)
        factor = 1 + 1e-3 * (300.0 - 300.15)

        assert curve.load_resistance[-1] == pytest.approx(1e-3 + 1e5 * factor)

    @pytest.mark.parametrize("kwargs", [{'sweep_duration': 0.0}, {'num_samples': 1}])
    def test_invalid_schedule(self, model, kwargs):
        with pytest.raises(InvalidParameterError):
            solve_iv_curve(model, **kwargs)


class TestFailurePolicy:
    """Test handling of samples that do not converge"""

    def run(self, model, on_failure):
        engine = SweepEngine(model, warm_start=False, on_failure=on_failure, max_iterations=1)
        return engine.run([0.0, 0.5, 1.0], [0.0, 3.0, 0.0], [1e4, 1e4, 1e4])

    def test_continue_records_failure(self, model):
        curve = self.run(model, 'continue')

        assert len(curve) == 3
        assert curve.failed_indices == [1]
        assert np.isnan(curve.voltage[1])
        assert np.isnan(curve.current[1])
        assert np.isnan(curve.to_dataframe(detailed=True)['diode_power'][1])
        assert curve.voltage[2] == 0.0
        assert curve[1].time == 0.5

    def test_raise_aborts(self, model):
        with pytest.raises(ConvergenceError) as excinfo:
            self.run(model, 'raise')
        assert excinfo.value.time == 0.5

    def test_invalid_policy(self, model):
        with pytest.raises(InvalidParameterError):
            SweepEngine(model, on_failure='ignore')

    def test_timeout(self, model):
        engine = SweepEngine(model, timeout=1e-12)
        n = len(RESISTANCES)

        with pytest.raises(SweepTimeoutError):
            engine.run([0.0] * n, [3.0] * n, RESISTANCES)

    def test_invalid_timeout(self, model):
        with pytest.raises(InvalidParameterError):
            SweepEngine(model, timeout=0.0)

    def test_length_mismatch(self, model):
        with pytest.raises(InvalidParameterError):
            SweepEngine(model).run([0.0, 1.0], [3.0], [1.0, 2.0])


class TestExport:
    """Test tabular export of IV curves"""

    def test_records(self, curve):
        records = curve.to_records()

        assert len(records) == len(curve)
        assert set(records[0]) == {'time', 'voltage', 'current'}
        assert records[5]['voltage'] == curve[5].voltage

    def test_dataframe(self, curve):
        df = curve.to_dataframe()
        assert list(df.columns) == CSV_COLUMNS
        assert len(df) == len(curve)

        detailed = curve.to_dataframe(detailed=True)
        assert {'power', 'node_voltage', 'diode_power', 'iterations', 'converged'} <= set(detailed.columns)
        np.testing.assert_allclose(detailed['power'], curve.voltage * curve.current)

    def test_csv(self, curve, tmp_path):
        path = tmp_path / "iv.csv"
        curve.to_csv(path)

        df = pd.read_csv(path)
        assert list(df.columns) == CSV_COLUMNS
        np.testing.assert_allclose(df['voltage'], curve.voltage)

    def test_repr(self, curve):
        assert repr(curve) == "IVCurve(100 points, 0 failed)"


class TestIVAnalysis:
    """Test extraction of curve parameters"""

    def test_find_mpp(self):
        voltage = np.array([0.0, 1.0, 2.0, 3.0])
        current = np.array([3.0, 2.5, 1.5, 0.0])

        assert find_mpp(voltage, current) == (2.0, 1.5, 3.0)

    def test_find_mpp_no_generation(self):
        assert find_mpp([0.0, 0.1], [0.0, -1.0]) == (0.0, 0.0, 0.0)

    def test_extract_parameters(self, curve):
        params = extract_parameters(curve)

        assert params['Isc'] == pytest.approx(3.0, rel=1e-3)
        assert 0.3 < params['Voc'] < 0.4
        assert 0.5 < params['FF'] < 0.85
        assert params['Vmpp'] < params['Voc']
        assert params['Impp'] < params['Isc']
        assert params['Pmpp'] == pytest.approx(params['Vmpp'] * params['Impp'])

    def test_failed_points_ignored(self):
        points = [OperatingPoint.failed(0.0, 1.0, 3.0), OperatingPoint.failed(1.0, 2.0, 3.0)]
        params = extract_parameters(IVCurve(points))

        assert all(value == 0.0 for value in params.values())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
