"""
Tests for the exploratory analysis, the interpretation and the end-to-end
report.

Run with:  python -m pytest tests/ -v
Or:        python tests/test_report.py
"""

import numpy as np
import pandas as pd
import pytest
import sys
import os
import tempfile

import matplotlib
matplotlib.use('Agg')

# Allow running from repo root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from concrete_strength import StrengthReport, run_report, simulate_concrete
from concrete_strength.cli import main
from concrete_strength.config import FEATURE_COLS
from concrete_strength.eda import (
    correlations, plot_correlation_heatmap, plot_distributions,
    strength_by_age, summarize,
)
from concrete_strength.interpret import best_mixes, high_strength_profile
from concrete_strength.models import OLSRegressor
from concrete_strength.data import engineer_features


# Shared fixture: one completed report (fitting seven models is the slow
# part, so it is run once per session).
_REPORT = {}


def _report():
    if 'r' not in _REPORT:
        df = simulate_concrete(n=400, random_state=11)
        test = df.sample(20, random_state=0).drop(columns=['Strength'])
        test.insert(0, 'id', np.arange(100, 120))
        _REPORT['test'] = test.reset_index(drop=True)
        _REPORT['r'] = StrengthReport(cv_folds=3, random_state=0).run(
            df, test_df=_REPORT['test'], verbose=False)
    return _REPORT['r']


def test_eda_tables():
    df = simulate_concrete(n=300, random_state=2)
    summary = summarize(df)
    assert {'skewness', 'kurtosis', 'zeros', 'missing'} <= set(summary)
    assert summary.loc['FlyAsh', 'zeros'] > 0

    corr, with_target = correlations(df)
    assert corr.shape == (9, 9)
    assert 'Strength' not in with_target.index
    assert with_target.is_monotonic_decreasing

    by_age = strength_by_age(df)
    assert by_age['n'].sum() == 300
    assert by_age.loc[28, 'Mean_Strength'] > by_age.loc[3, 'Mean_Strength']

    fig = plot_distributions(df)
    assert len([ax for ax in fig.axes if ax.get_visible()]) == 9

    heatmap = plot_correlation_heatmap(df)
    # one annotation per cell of the 9 x 9 matrix
    assert len(heatmap.axes[0].texts) == 81
    print("  PASS: EDA tables and figures")


def test_high_strength_profile():
    df = simulate_concrete(n=300, random_state=2)
    df['Strength'] = df['Cement'] / 10
    profile = high_strength_profile(df, quantile=0.75)
    assert profile.loc['Cement', 'Top_Mean'] > profile.loc['Cement',
                                                            'All_Mean']
    assert 'WaterCementRatio' in profile.index
    with pytest.raises(ValueError):
        high_strength_profile(df, quantile=1.5)
    print("  PASS: High-strength composition profile")


def test_best_mixes_are_reaged_and_ranked():
    df = simulate_concrete(n=200, random_state=4)
    model = OLSRegressor().fit(engineer_features(df), df['Strength'])
    best = best_mixes(model, df, age=28, top=5)

    assert len(best) == 5
    assert (best['Age'] == 28).all()
    assert best['Predicted_Strength'].is_monotonic_decreasing
    print(f"  PASS: Best mixes (top={best['Predicted_Strength'].iloc[0]:.1f} "
          f"MPa)")


def test_full_report():
    report = _report()

    assert len(report.metrics_) == 7
    assert report.best_model_name_ == report.metrics_.iloc[0]['Model']
    assert report.metrics_['Test_R2'].max() > 0.8
    assert list(report.diagnostics_)[0] == 'OLS'
    assert len(report.diagnostics_) == 2
    assert report.eda_['transform_screening'].shape[0] == len(FEATURE_COLS)
    assert report.insights_['effects'].loc['Age', 'Effect'] == 'raises'
    assert all(isinstance(p, str) and p for p in report.narrative_)
    print(f"  PASS: Full report (best={report.best_model_name_}, "
          f"{len(report.narrative_)} paragraphs)")


def test_submission():
    report = _report()
    test = _REPORT['test']

    sub = report.submission_
    assert list(sub.columns) == ['id', 'Strength']
    assert sub['id'].tolist() == list(range(100, 120))
    assert np.all(np.isfinite(sub['Strength']))

    no_id = test.drop(columns=['id'])
    no_id.loc[0, 'Cement'] = np.nan
    sub2 = report.make_submission(no_id)
    assert sub2['id'].tolist() == list(range(20))
    assert np.all(np.isfinite(sub2['Strength']))

    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, 'sub', 'submission.csv')
        report.write_submission(test, path)
        written = pd.read_csv(path)
        assert len(written) == 20
    print("  PASS: Submission ids and predictions")


def test_artifacts_written():
    report = _report()
    with tempfile.TemporaryDirectory() as tmp:
        report.save_artifacts(tmp)
        files = set(os.listdir(tmp))
        for name in ['metrics.csv', 'assumptions.csv', 'vif.csv',
                     'effects.csv', 'best_mixes.csv', 'summary.csv',
                     'interpretation.md', 'submission.csv',
                     'distributions.png', 'correlation.png',
                     'features_vs_strength.png', 'predicted_vs_actual.png',
                     'residuals_ols.png']:
            assert name in files, name
        with open(os.path.join(tmp, 'interpretation.md'),
                  encoding='utf-8') as f:
            text = f.read()
        assert '## Model comparison' in text
        assert report.best_model_name_ in text
    print("  PASS: Artifacts written")


def test_report_requires_run():
    report = StrengthReport()
    with pytest.raises(RuntimeError):
        report.predict(simulate_concrete(n=5))
    with pytest.raises(RuntimeError):
        report.summary()
    print("  PASS: Unrun report raises RuntimeError")


def test_run_report_without_capping_or_cv():
    df = simulate_concrete(n=150, random_state=8)
    report = run_report(df, verbose=False, cv_folds=0, cap_outliers=False,
                        transforms={})
    assert report.outlier_bounds_ is None
    assert report.metrics_['CV_R2_mean'].isna().all()
    assert report.submission_ is None
    preds = report.predict(df.head(3))
    assert len(preds) == 3
    print("  PASS: run_report with capping, CV and transforms off")


def test_report_with_constant_fly_ash():
    df = simulate_concrete(n=200, random_state=12)
    df['FlyAsh'] = 0.0
    test = simulate_concrete(n=10, random_state=13).drop(columns=['Strength'])

    report = run_report(df, test_df=test, verbose=False, cv_folds=0)
    assert 'FlyAsh' not in report.features_
    assert 'FlyAsh' not in report.X_train_.columns
    assert 'WaterBinderRatio' in report.features_
    assert len(report.metrics_) == 7
    assert np.all(np.isfinite(report.submission_['Strength']))
    assert len(report.insights_['best_mixes']) == 5
    print("  PASS: Report runs when a mix component is constant")


def test_cli():
    with tempfile.TemporaryDirectory() as tmp:
        data = os.path.join(tmp, 'train.csv')
        simulate_concrete(n=150, random_state=9).to_csv(data, index=False)
        outdir = os.path.join(tmp, 'out')
        code = main(['--data', data, '--outdir', outdir, '--quiet',
                     '--cv-folds', '2', '--degree', '2'])
        assert code == 0
        assert os.path.exists(os.path.join(outdir, 'metrics.csv'))
    print("  PASS: CLI runs end to end")


if __name__ == '__main__':
    print("=" * 60)
    print("Report — Test Suite")
    print("=" * 60)
    print()

    tests = [
        test_eda_tables,
        test_high_strength_profile,
        test_best_mixes_are_reaged_and_ranked,
        test_full_report,
        test_submission,
        test_artifacts_written,
        test_report_requires_run,
        test_run_report_without_capping_or_cv,
        test_report_with_constant_fly_ash,
        test_cli,
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
