"""
Tests for the regression assumption diagnostics.

Run with:  python -m pytest tests/ -v
Or:        python tests/test_diagnostics.py
"""

import numpy as np
import pandas as pd
import sys
import os

import matplotlib
matplotlib.use('Agg')

# Allow running from repo root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from concrete_strength.diagnostics import (
    AssumptionReport, autocorrelation, check_assumptions, heteroscedasticity,
    normality_tests, plot_residual_diagnostics, vif_table,
)
from concrete_strength.models import OLSRegressor, StepwiseRegressor


def test_normality_detects_skewed_residuals():
    rng = np.random.RandomState(42)
    normal = normality_tests(rng.randn(500))
    skewed = normality_tests(rng.exponential(size=500))

    assert normal['jarque_bera']['p_value'] > 0.001
    assert abs(normal['skewness']) < 0.5
    for test in ['shapiro_wilk', 'jarque_bera', 'anderson_darling']:
        assert not skewed[test]['is_normal'], test
    print(f"  PASS: Normality tests (skewed JB p="
          f"{skewed['jarque_bera']['p_value']:.2e})")


def test_shapiro_skipped_for_large_samples():
    rng = np.random.RandomState(0)
    out = normality_tests(rng.randn(6000))
    assert 'shapiro_wilk' not in out
    assert 'jarque_bera' in out
    print("  PASS: Shapiro-Wilk skipped above 5000 observations")


def test_vif_flags_collinear_features():
    rng = np.random.RandomState(1)
    n = 300
    X = pd.DataFrame({'A': rng.randn(n), 'B': rng.randn(n),
                      'D': rng.randn(n)})
    X['C'] = X['A'] + X['B'] + rng.randn(n) * 0.05

    vifs = vif_table(X).set_index('Feature')
    assert vifs.loc['C', 'VIF'] > 10
    assert vifs.loc['C', 'High']
    assert vifs.loc['D', 'VIF'] < 2
    assert not vifs.loc['D', 'High']
    print(f"  PASS: VIF flags collinearity "
          f"(C={vifs.loc['C', 'VIF']:.0f}, D={vifs.loc['D', 'VIF']:.2f})")


def test_breusch_pagan_detects_fanning_residuals():
    rng = np.random.RandomState(2)
    x = rng.uniform(1, 10, 500)
    resid = rng.randn(500) * x
    out = heteroscedasticity(resid, pd.DataFrame({'x': x}))
    assert not out['breusch_pagan']['is_homoscedastic']
    assert out['breusch_pagan']['p_value'] < 0.01
    print("  PASS: Breusch-Pagan detects heteroscedasticity")


def test_durbin_watson():
    rng = np.random.RandomState(3)
    e = rng.randn(500)
    ar = np.zeros(500)
    for t in range(1, 500):
        ar[t] = 0.9 * ar[t - 1] + e[t]

    iid = autocorrelation(e)['durbin_watson']
    pos = autocorrelation(ar)['durbin_watson']
    assert iid['no_autocorrelation']
    assert not pos['no_autocorrelation']
    assert pos['interpretation'].startswith("Positive")
    print(f"  PASS: Durbin-Watson (iid={iid['statistic']:.2f}, "
          f"AR(1)={pos['statistic']:.2f})")


def _fitted_linear(n=300, seed=4):
    rng = np.random.RandomState(seed)
    X = pd.DataFrame(rng.randn(n, 4), columns=['A', 'B', 'C', 'D'])
    y = 2 * X['A'] + X['B'] + rng.randn(n)
    return X, y


def test_check_assumptions_report():
    X, y = _fitted_linear()
    model = OLSRegressor().fit(X, y)
    rep = check_assumptions(model, X, y)

    assert isinstance(rep, AssumptionReport)
    assert rep['features'] == ['A', 'B', 'C', 'D']
    assert np.allclose(rep['residuals'] + rep['fitted'], y.values)

    frame = rep.summary_frame()
    assert list(frame['Test']) == [
        'Shapiro-Wilk', 'Jarque-Bera', 'Anderson-Darling',
        'Max VIF (<= 10)', 'Breusch-Pagan', 'Durbin-Watson',
    ]
    # Well-specified model with independent regressors
    assert frame.set_index('Test').loc['Durbin-Watson', 'Passed']
    assert frame.set_index('Test').loc['Max VIF (<= 10)', 'Passed']
    assert rep['multicollinearity']['condition_number'] >= 1.0
    print("  PASS: Assumption report\n" + frame.to_string(index=False))


def test_check_assumptions_uses_selected_features():
    X, y = _fitted_linear()
    model = StepwiseRegressor().fit(X, y)
    rep = check_assumptions(model, X, y)
    assert rep['features'] == model.selected_features_
    assert (set(rep['multicollinearity']['vif']['Feature'])
            == set(model.selected_features_))
    print(f"  PASS: Diagnostics restricted to {model.selected_features_}")


def test_residual_plot():
    X, y = _fitted_linear()
    rep = check_assumptions(OLSRegressor().fit(X, y), X, y)
    fig = plot_residual_diagnostics(rep)
    assert len(fig.axes) == 4
    print("  PASS: Residual diagnostic figure has four panels")


if __name__ == '__main__':
    print("=" * 60)
    print("Diagnostics — Test Suite")
    print("=" * 60)
    print()

    tests = [
        test_normality_detects_skewed_residuals,
        test_shapiro_skipped_for_large_samples,
        test_vif_flags_collinear_features,
        test_breusch_pagan_detects_fanning_residuals,
        test_durbin_watson,
        test_check_assumptions_report,
        test_check_assumptions_uses_selected_features,
        test_residual_plot,
    ]

    passed = 0
    failed = 0
    for test in tests:
        try:
            test()
            passed += 1
        except AssertionError as e:
            print(f"  FAIL: {test.__name__}: {e}")
            failed += 1
        except Exception as e:
            print(f"  ERROR: {test.__name__}: {type(e).__name__}: {e}")
            failed += 1

    print()
    print(f"Results: {passed} passed, {failed} failed "
          f"out of {len(tests)} tests")
    print("=" * 60)
