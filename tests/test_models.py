"""
Tests for the OLS / stepwise estimators and the model zoo.

Run with:  python -m pytest tests/ -v
Or:        python tests/test_models.py
"""

import numpy as np
import pandas as pd
import pytest
import sys
import os

# Allow running from repo root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from sklearn.base import clone
from sklearn.ensemble import RandomForestRegressor
from sklearn.linear_model import LinearRegression
from sklearn.model_selection import GridSearchCV
from sklearn.exceptions import NotFittedError
from sklearn.utils.validation import check_is_fitted

from concrete_strength.models import (
    OLSRegressor, StepwiseRegressor, build_models, feature_importance,
)


def _signal_data(n=300, seed=42):
    """y depends on A and B only; C, D, E are noise."""
    rng = np.random.RandomState(seed)
    X = pd.DataFrame(rng.randn(n, 5), columns=list('ABCDE'))
    y = pd.Series(3 * X['A'] - 2 * X['B'] + 5 + rng.randn(n) * 0.5)
    return X, y


def test_ols_matches_sklearn():
    X, y = _signal_data()
    ols = OLSRegressor().fit(X, y)
    ref = LinearRegression().fit(X, y)

    assert np.allclose(ols.coef_.values, ref.coef_, atol=1e-8)
    assert ols.intercept_ == pytest.approx(ref.intercept_)
    assert ols.score(X, y) == pytest.approx(ref.score(X, y))
    assert ols.selected_features_ == list('ABCDE')
    assert 'OLS Regression Results' in ols.summary()
    print(f"  PASS: OLS matches sklearn (R²={ols.score(X, y):.4f})")


def test_ols_predict_on_arrays_and_frames():
    X, y = _signal_data()
    ols = OLSRegressor().fit(X, y)
    from_frame = ols.predict(X.iloc[:10])
    from_array = ols.predict(X.values[:10])
    assert np.allclose(from_frame, from_array)

    with pytest.raises(ValueError):
        ols.predict(X.values[:, :3])
    with pytest.raises(ValueError):
        ols.predict(X.drop(columns=['A']))
    print("  PASS: OLS predicts from DataFrames and arrays")


def test_unfitted_model_raises():
    with pytest.raises(RuntimeError):
        OLSRegressor().predict(np.zeros((2, 2)))
    with pytest.raises(RuntimeError):
        StepwiseRegressor().coef_
    print("  PASS: Unfitted models raise RuntimeError")


def test_fitted_state_follows_sklearn_convention():
    X, y = _signal_data(n=80)
    for model in [OLSRegressor(), StepwiseRegressor()]:
        with pytest.raises(NotFittedError):
            check_is_fitted(model)
        model.fit(X, y)
        check_is_fitted(model)
    assert StepwiseRegressor().get_params() == clone(model).get_params()
    print("  PASS: Fitted attributes exist only after fit")


def test_forward_stepwise_selects_signal():
    X, y = _signal_data()
    model = StepwiseRegressor(direction='forward').fit(X, y)

    assert 'A' in model.selected_features_
    assert 'B' in model.selected_features_
    # Strongest effect enters first
    assert model.steps_.iloc[0]['Feature'] == 'A'
    assert (model.steps_['Action'] == 'Add').all()
    assert model.steps_['R2'].is_monotonic_increasing
    print(f"  PASS: Forward stepwise "
          f"(selected={model.selected_features_})")


def test_backward_stepwise_removes_noise():
    X, y = _signal_data()
    model = StepwiseRegressor(direction='backward').fit(X, y)

    assert {'A', 'B'} <= set(model.selected_features_)
    assert (model.steps_['Action'] == 'Remove').all()
    # Everything kept is significant
    assert (model.pvalues_ <= 0.05).all()
    print(f"  PASS: Backward stepwise "
          f"(selected={model.selected_features_})")


def test_bidirectional_stepwise_with_information_criteria():
    X, y = _signal_data()
    for criterion in ['aic', 'bic']:
        model = StepwiseRegressor(direction='both',
                                  criterion=criterion).fit(X, y)
        assert {'A', 'B'} <= set(model.selected_features_)
        assert model.steps_.iloc[0]['Measure'] == criterion.upper()
    print("  PASS: Bidirectional stepwise with AIC / BIC")


def test_stepwise_falls_back_to_one_feature():
    rng = np.random.RandomState(0)
    X = pd.DataFrame(rng.randn(100, 3), columns=['P', 'Q', 'R'])
    y = X['Q'] * 0.01 + rng.randn(100)

    model = StepwiseRegressor(direction='forward', alpha=1e-9).fit(X, y)
    assert len(model.selected_features_) == 1
    assert model.steps_.iloc[-1]['Action'] == 'Fallback'
    assert np.all(np.isfinite(model.predict(X)))
    print("  PASS: Stepwise keeps one feature when none is significant")


def test_stepwise_invalid_options():
    X, y = _signal_data(n=50)
    with pytest.raises(ValueError):
        StepwiseRegressor(direction='sideways').fit(X, y)
    with pytest.raises(ValueError):
        StepwiseRegressor(criterion='r2').fit(X, y)
    print("  PASS: Invalid stepwise options rejected")


def test_stepwise_is_cloneable():
    model = StepwiseRegressor(direction='both', alpha=0.01)
    copy = clone(model)
    assert copy.get_params()['direction'] == 'both'
    assert copy.get_params()['alpha'] == 0.01
    print("  PASS: StepwiseRegressor works with sklearn.clone")


def test_build_models():
    models = build_models(poly_degree=3)
    assert list(models) == [
        'OLS', 'Stepwise (forward)', 'Stepwise (backward)',
        'Stepwise (both)', 'Polynomial (degree 3)', 'Random Forest', 'SVR',
    ]
    assert models['Stepwise (backward)'].direction == 'backward'
    assert isinstance(build_models(tune_svr=True)['SVR'], GridSearchCV)
    with pytest.raises(ValueError):
        build_models(poly_degree=0)
    print("  PASS: Model zoo built in report order")


def test_feature_importance():
    X, y = _signal_data()

    rf = RandomForestRegressor(n_estimators=50, random_state=0).fit(X, y)
    imp = feature_importance(rf, X.columns)
    assert imp.sum() == pytest.approx(1.0)
    assert imp.index[0] == 'A'

    stepwise = StepwiseRegressor().fit(X, y)
    std = feature_importance(stepwise, X.columns, X, y)
    assert std.index[0] == 'A'
    assert std['B'] < 0
    assert set(std.index) == set(X.columns)

    svr = build_models()['SVR'].fit(X, y)
    perm = feature_importance(svr, X.columns, X, y)
    assert len(perm) == 5 and perm.index[0] == 'A'
    with pytest.raises(ValueError):
        feature_importance(svr, X.columns)
    print("  PASS: Feature importances for RF, stepwise and SVR")


if __name__ == '__main__':
    print("=" * 60)
    print("Models — Test Suite")
    print("=" * 60)
    print()

    tests = [
        test_ols_matches_sklearn,
        test_ols_predict_on_arrays_and_frames,
        test_unfitted_model_raises,
        test_fitted_state_follows_sklearn_convention,
        test_forward_stepwise_selects_signal,
        test_backward_stepwise_removes_noise,
        test_bidirectional_stepwise_with_information_criteria,
        test_stepwise_falls_back_to_one_feature,
        test_stepwise_invalid_options,
        test_stepwise_is_cloneable,
        test_build_models,
        test_feature_importance,
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
