"""
The end-to-end concrete strength report.

``StrengthReport.run`` cleans the data, explores it, fits and compares the
regression models, checks the linear-model assumptions, interprets which
composition maximises strength and, given a test table, writes the
prediction submission.
"""

import os
import re
import time

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from sklearn.base import clone
from sklearn.model_selection import train_test_split
from sklearn.pipeline import Pipeline

from .config import (
    ALPHA, CV_FOLDS, DEFAULT_TRANSFORMS, FEATURE_COLS, ID_COL,
    OUTLIER_FACTOR, POLY_DEGREE, RANDOM_STATE, REFERENCE_AGE, TARGET_COL,
    TEST_SIZE, VIF_THRESHOLD,
)
from .data import (
    OutlierCapper, clean_dataset, engineer_features, screen_transforms,
    standardize_columns,
)
from .diagnostics import check_assumptions, plot_residual_diagnostics
from .eda import (
    correlations, plot_correlation_heatmap, plot_distributions,
    plot_feature_vs_target, strength_by_age, summarize,
)
from .interpret import (
    best_mixes, composition_effects, high_strength_profile, narrative,
)
from .metrics import evaluate_models
from .models import StepwiseRegressor, build_models


def _slug(name):
    return re.sub(r'[^a-z0-9]+', '_', name.lower()).strip('_')


class StrengthReport:
    """
    Exploratory analysis and regression modelling of concrete compressive
    strength.

    Parameters
    ----------
    test_size : float, default=0.2
        Fraction of the cleaned data held out for testing.
    random_state : int, default=42
        Seed for the split, cross-validation and random forest.
    alpha : float, default=0.05
        Significance level for stepwise selection and assumption tests.
    poly_degree : int, default=2
        Degree of the polynomial regression.
    cv_folds : int, default=5
        k for the k-fold cross-validated R² (< 2 disables it).
    cap_outliers : bool, default=True
        Winsorise predictors at the training Tukey fences.
    outlier_factor : float, default=1.5
        IQR multiplier for the fences.
    transforms : dict or None
        Column -> transform applied when building the model matrix.
        None means log curing age; {} means no transforms.
    tune_svr : bool, default=False
        Grid-search the SVR hyper-parameters.
    vif_threshold : float, default=10.0
        VIF above which a feature is flagged as collinear.
    """

    def __init__(
        self,
        test_size=TEST_SIZE,
        random_state=RANDOM_STATE,
        alpha=ALPHA,
        poly_degree=POLY_DEGREE,
        cv_folds=CV_FOLDS,
        cap_outliers=True,
        outlier_factor=OUTLIER_FACTOR,
        transforms=None,
        tune_svr=False,
        vif_threshold=VIF_THRESHOLD,
    ):
        self.test_size = test_size
        self.random_state = random_state
        self.alpha = alpha
        self.poly_degree = poly_degree
        self.cv_folds = cv_folds
        self.cap_outliers = cap_outliers
        self.outlier_factor = outlier_factor
        self.transforms = (DEFAULT_TRANSFORMS if transforms is None
                           else dict(transforms))
        self.tune_svr = tune_svr
        self.vif_threshold = vif_threshold

        # --- attributes set during run ---
        self.clean_df_ = None
        self.cleaning_actions_ = None
        self.features_ = None
        self.eda_ = None
        self.X_train_ = None
        self.X_test_ = None
        self.y_train_ = None
        self.y_test_ = None
        self.outlier_bounds_ = None
        self.models_ = None
        self.metrics_ = None
        self.best_model_name_ = None
        self.final_model_ = None
        self.diagnostics_ = None
        self.insights_ = None
        self.narrative_ = None
        self.submission_ = None
        self.runtime_ = None

        self._medians = None
        self._is_fitted = False

    # ---- public interface ------------------------------------------------

    def run(self, df, test_df=None, outdir=None, verbose=True):
        """
        Produce the full report.

        Parameters
        ----------
        df : pd.DataFrame
            Training data with the eight mix-design columns and strength.
            Raw UCI / Kaggle headers are recognised.
        test_df : pd.DataFrame or None
            Mixes to predict for the submission file.
        outdir : str or None
            Directory for tables, figures, the interpretation and the
            submission.  Nothing is written when None.
        verbose : bool, default=True
            Print progress.

        Returns
        -------
        self
        """
        t0 = time.time()
        df = standardize_columns(df)

        if verbose:
            print("=" * 70)
            print("CONCRETE COMPRESSIVE STRENGTH REPORT")
            print("=" * 70)
            print(f"  Dataset : n={len(df)}, columns={df.shape[1]}")
            print(f"  test_size={self.test_size}  alpha={self.alpha}  "
                  f"degree={self.poly_degree}  cv_folds={self.cv_folds}")
            print()

        # Step 1 ------------------------------------------------------------
        if verbose:
            print("STEP 1: DATA CLEANING")
            print("-" * 70)
        self.clean_df_, self.cleaning_actions_ = clean_dataset(
            df, TARGET_COL, verbose=verbose)
        self._medians = self.clean_df_[FEATURE_COLS].median()
        self.features_ = self._model_columns()

        # Step 2 ------------------------------------------------------------
        if verbose:
            print("\nSTEP 2: EXPLORATORY ANALYSIS")
            print("-" * 70)
        self.eda_ = self._explore(self.clean_df_, verbose)

        # Step 3 ------------------------------------------------------------
        if verbose:
            print("\nSTEP 3: FEATURES AND TRAIN / TEST SPLIT")
            print("-" * 70)
        self._split(verbose)

        # Step 4 ------------------------------------------------------------
        if verbose:
            print("\nSTEP 4: MODEL FITTING AND EVALUATION")
            print("-" * 70)
        models = build_models(
            random_state=self.random_state,
            poly_degree=self.poly_degree,
            alpha=self.alpha,
            tune_svr=self.tune_svr,
            cv_folds=self.cv_folds,
        )
        self.models_, self.metrics_ = evaluate_models(
            models, self.X_train_, self.y_train_, self.X_test_, self.y_test_,
            cv_folds=self.cv_folds, random_state=self.random_state,
            verbose=verbose,
        )
        self.best_model_name_ = self.metrics_.iloc[0]['Model']
        if verbose:
            self._print_selections()
            print(f"\n  Best model (lowest test RMSE): "
                  f"{self.best_model_name_}")

        # Refit the winner on all cleaned data for prediction
        self.final_model_ = self._final_pipeline(
            models[self.best_model_name_])

        # Step 5 ------------------------------------------------------------
        if verbose:
            print("\nSTEP 5: ASSUMPTION DIAGNOSTICS")
            print("-" * 70)
        self.diagnostics_ = self._diagnose(verbose)

        # Step 6 ------------------------------------------------------------
        if verbose:
            print("\nSTEP 6: INTERPRETATION")
            print("-" * 70)
        self._interpret(verbose)

        self._is_fitted = True

        # Step 7 ------------------------------------------------------------
        if test_df is not None:
            if verbose:
                print("\nSTEP 7: SUBMISSION")
                print("-" * 70)
            self.submission_ = self.make_submission(test_df)
            if verbose:
                print(f"  {len(self.submission_)} prediction(s) with "
                      f"{self.best_model_name_}")

        if outdir is not None:
            self.save_artifacts(outdir)
            if verbose:
                print(f"\n  Artifacts written to: {outdir}")

        self.runtime_ = time.time() - t0

        if verbose:
            self._print_summary()

        return self

    def predict(self, df):
        """
        Predict strength for raw mix-design rows with the best model.

        Missing component values are filled with the training medians.
        """
        self._check_fitted()
        X = self._prepare(df)
        return self.final_model_.predict(X)

    def make_submission(self, test_df):
        """Return the submission table: id and predicted strength."""
        self._check_fitted()
        test_df = standardize_columns(test_df).reset_index(drop=True)
        if ID_COL in test_df.columns:
            ids = test_df[ID_COL].values
        else:
            ids = np.arange(len(test_df))
        return pd.DataFrame({ID_COL: ids, TARGET_COL: self.predict(test_df)})

    def write_submission(self, test_df, path):
        """Write the submission CSV to ``path`` and return the table."""
        submission = self.make_submission(test_df)
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        submission.to_csv(path, index=False)
        self.submission_ = submission
        return submission

    def summary(self):
        """Print the final summary."""
        self._check_fitted()
        self._print_summary()

    def interpretation_markdown(self):
        """The report's conclusions as a Markdown document."""
        self._check_fitted()
        lines = [
            "# Concrete Compressive Strength Report",
            "",
            f"Cleaned data: {len(self.clean_df_)} mixes "
            f"({len(self.X_train_)} train / {len(self.X_test_)} test).",
            "",
            "## Model comparison",
            "",
            "```",
            self.metrics_[['Model', 'Test_R2', 'Test_RMSE', 'Test_MAE',
                           'CV_R2_mean']].to_string(index=False),
            "```",
            "",
            f"Best model: **{self.best_model_name_}**.",
            "",
            "## Assumption checks",
            "",
        ]
        for name, rep in self.diagnostics_.items():
            lines += [f"### {name}", "", "```",
                      rep.summary_frame().to_string(index=False), "```", ""]
        lines += ["## Which composition maximises strength", ""]
        for para in self.narrative_:
            lines += [para, ""]
        return "\n".join(lines)

    def save_artifacts(self, outdir):
        """Write tables, figures and the interpretation to ``outdir``."""
        self._check_fitted()
        os.makedirs(outdir, exist_ok=True)

        self.metrics_.to_csv(os.path.join(outdir, 'metrics.csv'),
                             index=False)
        self.eda_['summary'].to_csv(os.path.join(outdir, 'summary.csv'))
        self.insights_['effects'].to_csv(os.path.join(outdir, 'effects.csv'))
        self.insights_['best_mixes'].to_csv(
            os.path.join(outdir, 'best_mixes.csv'), index=False)

        frames, vifs = [], []
        for name, rep in self.diagnostics_.items():
            sf = rep.summary_frame()
            sf.insert(0, 'Model', name)
            frames.append(sf)
            vt = rep['multicollinearity']['vif'].copy()
            vt.insert(0, 'Model', name)
            vifs.append(vt)
        pd.concat(frames).to_csv(os.path.join(outdir, 'assumptions.csv'),
                                 index=False)
        pd.concat(vifs).to_csv(os.path.join(outdir, 'vif.csv'), index=False)

        with open(os.path.join(outdir, 'interpretation.md'), 'w',
                  encoding='utf-8') as f:
            f.write(self.interpretation_markdown())

        if self.submission_ is not None:
            self.submission_.to_csv(os.path.join(outdir, 'submission.csv'),
                                    index=False)

        figures = {
            'distributions.png': plot_distributions(self.clean_df_),
            'correlation.png': plot_correlation_heatmap(self.clean_df_),
            'features_vs_strength.png': plot_feature_vs_target(
                self.clean_df_),
            'predicted_vs_actual.png': self.plot_predicted_vs_actual(),
        }
        for name, rep in self.diagnostics_.items():
            figures[f'residuals_{_slug(name)}.png'] = (
                plot_residual_diagnostics(rep, title=f"Residuals: {name}"))
        for fname, fig in figures.items():
            fig.savefig(os.path.join(outdir, fname), dpi=150,
                        bbox_inches='tight')
            plt.close(fig)

    def plot_predicted_vs_actual(self, model_name=None, figsize=(7, 6)):
        """Test-split predicted vs actual strength for one model."""
        self._check_fitted()
        name = model_name or self.best_model_name_
        y = np.asarray(self.y_test_, dtype=np.float64)
        y_pred = self.models_[name].predict(self.X_test_)
        r2 = self.metrics_.set_index('Model').loc[name, 'Test_R2']

        fig, ax = plt.subplots(1, 1, figsize=figsize)
        ax.scatter(y, y_pred, alpha=0.4, s=10, color='steelblue')
        lo = min(y.min(), y_pred.min())
        hi = max(y.max(), y_pred.max())
        ax.plot([lo, hi], [lo, hi], 'r--', lw=2, label='Perfect fit')
        ax.set_xlabel("Actual strength (MPa)")
        ax.set_ylabel("Predicted strength (MPa)")
        ax.set_title(f"{name}: Predicted vs Actual (test R²={r2:.4f})")
        ax.legend(fontsize=10, loc='best')
        ax.grid(True, alpha=0.3)
        fig.tight_layout()
        return fig

    # ---- Step implementations --------------------------------------------

    def _explore(self, df, verbose):
        summary = summarize(df)
        corr, with_target = correlations(df, TARGET_COL)
        by_age = strength_by_age(df, TARGET_COL)
        screening = screen_transforms(
            df[[c for c in FEATURE_COLS if c in self.features_]],
            df[TARGET_COL])

        if verbose:
            print("\n  Correlation with strength:")
            for feat, r in with_target.items():
                print(f"    {feat:20s}  r={r:+.3f}")
            skewed = summary.loc[summary['skewness'].abs() > 1, 'skewness']
            if len(skewed):
                print("\n  Skewed columns (|skew| > 1):")
                for feat, s in skewed.items():
                    print(f"    {feat:20s}  skew={s:+.2f}")
            print("\n  Best single-variable transform:")
            for _, row in screening.iterrows():
                print(f"    {row['Feature']:20s}  {row['Transform']:12s}  "
                      f"R²={row['R2']:.4f}  (linear {row['Linear_R2']:.4f})")

        return {
            'summary': summary,
            'correlation': corr,
            'target_correlation': with_target,
            'strength_by_age': by_age,
            'transform_screening': screening,
        }

    def _split(self, verbose):
        X = engineer_features(self.clean_df_, self.transforms,
                              self.features_)
        y = self.clean_df_[TARGET_COL].astype(float).reset_index(drop=True)

        X_train, X_test, y_train, y_test = train_test_split(
            X, y, test_size=self.test_size, random_state=self.random_state)
        X_train = X_train.reset_index(drop=True)
        X_test = X_test.reset_index(drop=True)

        if self.cap_outliers:
            capper = OutlierCapper(self.outlier_factor).fit(X_train)
            X_train = capper.transform(X_train)
            X_test = capper.transform(X_test)
            self.outlier_bounds_ = capper.bounds_

        self.X_train_, self.X_test_ = X_train, X_test
        self.y_train_ = y_train.reset_index(drop=True)
        self.y_test_ = y_test.reset_index(drop=True)

        if verbose:
            applied = ", ".join(f"{c}: {t}" for c, t in
                                self.transforms.items()) or "none"
            print(f"  Model matrix : {X.shape[1]} features "
                  f"({', '.join(X.columns)})")
            print(f"  Transforms   : {applied}")
            print(f"  Split        : {len(X_train)} train / "
                  f"{len(X_test)} test")
            if self.outlier_bounds_ is not None:
                capped = self.outlier_bounds_['n_capped']
                capped = capped[capped > 0]
                if len(capped):
                    details = ", ".join(f"{c}({n})"
                                        for c, n in capped.items())
                    print(f"  Capped       : {details}")
                else:
                    print("  Capped       : none")

    def _final_pipeline(self, model):
        X = engineer_features(self.clean_df_, self.transforms,
                              self.features_)
        y = self.clean_df_[TARGET_COL].astype(float).values
        steps = []
        if self.cap_outliers:
            steps.append(('capper', OutlierCapper(self.outlier_factor)))
        steps.append(('model', clone(model)))
        return Pipeline(steps).fit(X, y)

    def _print_selections(self):
        print()
        for name, model in self.models_.items():
            if isinstance(model, StepwiseRegressor):
                dropped = [f for f in model.feature_names_
                           if f not in model.selected_features_]
                print(f"  {name:22s}  kept {len(model.selected_features_)}"
                      f"  dropped: {dropped or 'none'}")

    def _diagnose(self, verbose):
        """Assumption checks for OLS and the best stepwise model."""
        stepwise = [name for name in self.metrics_['Model']
                    if isinstance(self.models_[name], StepwiseRegressor)]
        names = ['OLS'] + stepwise[:1]

        reports = {}
        for name in names:
            rep = check_assumptions(
                self.models_[name], self.X_train_, self.y_train_,
                alpha=self.alpha, vif_threshold=self.vif_threshold,
            )
            reports[name] = rep
            if verbose:
                print(f"\n  {name}:")
                for _, row in rep.summary_frame().iterrows():
                    p = (f"p={row['p_value']:.4f}"
                         if pd.notna(row['p_value']) else " " * 8)
                    verdict = "ok" if row['Passed'] else "VIOLATED"
                    print(f"    {row['Assumption']:18s} {row['Test']:20s} "
                          f"stat={row['Statistic']:9.3f}  {p}  {verdict}")
                high = rep['multicollinearity']['high_vif_features']
                if high:
                    print(f"    High VIF: {high}")
        return reports

    def _interpret(self, verbose):
        effects = composition_effects(
            self.models_['OLS'], self.models_.get('Random Forest'),
            self.X_train_, self.y_train_, alpha=self.alpha,
        )
        profile = high_strength_profile(self.clean_df_, TARGET_COL)
        by_age = self.eda_['strength_by_age']
        best = best_mixes(self.final_model_, self.clean_df_,
                          age=REFERENCE_AGE, transforms=self.transforms,
                          features=self.features_)

        self.insights_ = {
            'effects': effects,
            'profile': profile,
            'strength_by_age': by_age,
            'best_mixes': best,
        }
        self.narrative_ = narrative(effects, profile, by_age, best,
                                    alpha=self.alpha)

        if verbose:
            print()
            for para in self.narrative_:
                print(f"  * {para}")

    # ---- helpers -----------------------------------------------------------

    def _model_columns(self):
        """Engineered columns that vary in the cleaned training data."""
        X = engineer_features(self.clean_df_, self.transforms)
        varying = [c for c in X.columns if X[c].nunique() > 1]
        if not varying:
            raise ValueError("Every mix-design column is constant.")
        return varying

    def _prepare(self, df):
        df = standardize_columns(df).reset_index(drop=True)
        missing = [c for c in FEATURE_COLS if c not in df.columns]
        if missing:
            raise ValueError(f"Missing mix-design column(s): {missing}")
        rows = df[FEATURE_COLS].apply(pd.to_numeric, errors='coerce')
        rows = rows.replace([np.inf, -np.inf], np.nan)
        rows = rows.fillna(self._medians)
        return engineer_features(rows, self.transforms, self.features_)

    def _print_summary(self):
        print()
        print("=" * 70)
        print("FINAL REPORT SUMMARY")
        print("=" * 70)

        print("\nModel Comparison (sorted by test RMSE):")
        print("-" * 70)
        print(f"  {'Model':22s}  {'Train R²':>9s}  {'Test R²':>8s}  "
              f"{'RMSE':>7s}  {'MAE':>7s}  {'CV R²':>7s}")
        for _, row in self.metrics_.iterrows():
            print(f"  {row['Model']:22s}  {row['Train_R2']:>9.4f}  "
                  f"{row['Test_R2']:>8.4f}  {row['Test_RMSE']:>7.3f}  "
                  f"{row['Test_MAE']:>7.3f}  {row['CV_R2_mean']:>7.4f}")

        print("\nAssumptions:")
        print("-" * 70)
        for name, rep in self.diagnostics_.items():
            failed = rep.summary_frame()
            failed = failed.loc[~failed['Passed'], 'Test'].tolist()
            print(f"  {name:22s}  "
                  f"{'all passed' if not failed else 'violated: '}"
                  f"{', '.join(failed)}")

        print("\nInterpretation:")
        print("-" * 70)
        for para in self.narrative_:
            print(f"  * {para}")

        print(f"\n  Best model             : {self.best_model_name_}")
        if self.submission_ is not None:
            print(f"  Submission rows        : {len(self.submission_)}")
        if self.runtime_ is not None:
            print(f"  Runtime                : {self.runtime_:.2f}s")
        print("=" * 70)

    def _check_fitted(self):
        if not self._is_fitted:
            raise RuntimeError(
                "Report has not been run. Call .run(df) first."
            )


# ---------------------------------------------------------------------------
# Convenience function
# ---------------------------------------------------------------------------

def run_report(df, test_df=None, outdir=None, verbose=True, **kwargs):
    """
    One-liner convenience function.

    Parameters
    ----------
    df : pd.DataFrame
        Training data.
    test_df : pd.DataFrame or None
        Mixes to predict for the submission.
    outdir : str or None
        Where to write the artifacts.
    verbose : bool
        Print progress?
    **kwargs
        Passed to :class:`StrengthReport`.

    Returns
    -------
    StrengthReport
        The completed report.
    """
    report = StrengthReport(**kwargs)
    report.run(df, test_df=test_df, outdir=outdir, verbose=verbose)
    return report
