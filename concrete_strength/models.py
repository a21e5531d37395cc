"""
Regression models for compressive strength.

``OLSRegressor`` and ``StepwiseRegressor`` wrap statsmodels OLS in the
scikit-learn estimator interface so they can sit next to the polynomial,
random forest and support vector models in one comparison loop.
"""

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy import stats
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.ensemble import RandomForestRegressor
from sklearn.inspection import permutation_importance
from sklearn.linear_model import LinearRegression
from sklearn.model_selection import GridSearchCV, KFold
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import PolynomialFeatures, StandardScaler
from sklearn.svm import SVR
import warnings
warnings.filterwarnings('ignore')

from .config import (
    ALPHA, CV_FOLDS, POLY_DEGREE, RANDOM_STATE, RF_PARAMS, SVR_PARAMS,
    SVR_GRID,
)


DIRECTIONS = ('forward', 'backward', 'both')
CRITERIA = ('f-test', 'aic', 'bic')


def _fit_ols(X, y, features):
    """Fit statsmodels OLS with an intercept on ``features`` of ``X``."""
    design = sm.add_constant(X[list(features)], has_constant='add')
    return sm.OLS(y, design).fit()


# ---------------------------------------------------------------------------
# Ordinary least squares
# ---------------------------------------------------------------------------

class OLSRegressor(RegressorMixin, BaseEstimator):
    """
    Ordinary least squares with an intercept, fitted by statsmodels.

    The full statsmodels results object is kept in ``results_`` so the
    coefficient table, p-values and information criteria are available to
    the diagnostics and interpretation steps.
    """

    # ---- public interface ------------------------------------------------

    def fit(self, X, y):
        X, y = self._coerce_Xy(X, y)
        self.feature_names_ = list(X.columns)
        self.selected_features_ = self._select(X, y)
        self.results_ = _fit_ols(X, y, self.selected_features_)
        return self

    def predict(self, X):
        self._check_fitted()
        X = self._coerce_X(X)
        design = sm.add_constant(X[self.selected_features_],
                                 has_constant='add')
        return np.asarray(self.results_.predict(design), dtype=np.float64)

    @property
    def coef_(self):
        """Slopes indexed by feature (intercept excluded)."""
        self._check_fitted()
        return self.results_.params.drop('const')

    @property
    def intercept_(self):
        self._check_fitted()
        return float(self.results_.params['const'])

    @property
    def pvalues_(self):
        self._check_fitted()
        return self.results_.pvalues.drop('const')

    def summary(self):
        """Return the statsmodels regression summary as text."""
        self._check_fitted()
        return self.results_.summary().as_text()

    # ---- internals ---------------------------------------------------------

    def _select(self, X, y):
        return list(X.columns)

    def _coerce_Xy(self, X, y):
        if isinstance(X, np.ndarray):
            X = pd.DataFrame(X, columns=[f"X{i}" for i in range(X.shape[1])])
        elif not isinstance(X, pd.DataFrame):
            X = pd.DataFrame(X)
        X = X.astype(float).reset_index(drop=True)
        y = np.asarray(y, dtype=np.float64).ravel()
        if len(X) != len(y):
            raise ValueError(
                f"X has {len(X)} rows but y has {len(y)} values."
            )
        return X, y

    def _coerce_X(self, X):
        """Ensure X is a DataFrame with the training columns."""
        if isinstance(X, np.ndarray):
            if X.shape[1] != len(self.feature_names_):
                raise ValueError(
                    f"X has {X.shape[1]} columns, expected "
                    f"{len(self.feature_names_)}."
                )
            X = pd.DataFrame(X, columns=self.feature_names_)
        elif not isinstance(X, pd.DataFrame):
            X = pd.DataFrame(X)
        missing = [f for f in self.selected_features_ if f not in X.columns]
        if missing:
            raise ValueError(f"X is missing column(s): {missing}")
        return X.astype(float).reset_index(drop=True)

    def _check_fitted(self):
        if not hasattr(self, 'results_'):
            raise RuntimeError(
                "Model has not been fitted. Call .fit(X, y) first."
            )


# ---------------------------------------------------------------------------
# Stepwise selection
# ---------------------------------------------------------------------------

class StepwiseRegressor(OLSRegressor):
    """
    OLS on a stepwise-selected subset of the predictors.

    Parameters
    ----------
    direction : {'forward', 'backward', 'both'}, default='forward'
        forward  - start empty; at each round ALL remaining variables
                   compete and the best one is added.
        backward - start from every variable and remove the weakest one
                   while it is not significant.
        both     - forward additions, each followed by a backward check
                   of the variables already in the model.
    criterion : {'f-test', 'aic', 'bic'}, default='f-test'
        'f-test' adds on the partial F statistic against
        F(1 - alpha; 1, n - k - 2) and removes on p-value > alpha.
        'aic' / 'bic' add or remove whenever the criterion decreases.
    alpha : float, default=0.05
        Significance level for the F-test rules.
    max_steps : int, default=50
        Upper bound on add/remove moves (guards against cycling in 'both').
    verbose : bool, default=False
        Print every move.
    """

    def __init__(self, direction='forward', criterion='f-test', alpha=ALPHA,
                 max_steps=50, verbose=False):
        self.direction = direction
        self.criterion = criterion
        self.alpha = alpha
        self.max_steps = max_steps
        self.verbose = verbose

    def _select(self, X, y):
        if self.direction not in DIRECTIONS:
            raise ValueError(
                f"direction must be one of {DIRECTIONS}, "
                f"got '{self.direction}'"
            )
        if self.criterion not in CRITERIA:
            raise ValueError(
                f"criterion must be one of {CRITERIA}, "
                f"got '{self.criterion}'"
            )

        all_features = list(X.columns)
        selected = list(all_features) if self.direction == 'backward' else []
        steps = []

        for _ in range(self.max_steps):
            moved = False
            if self.direction in ('forward', 'both'):
                added = self._forward_step(X, y, selected, steps)
                moved = moved or added
            if self.direction in ('backward', 'both'):
                # 'both' re-checks after every addition; backward repeats
                # its own loop until nothing is removed
                removed = self._backward_step(X, y, selected, steps)
                moved = moved or removed
            if not moved:
                break

        if not selected:
            # Nothing significant: keep the single most correlated variable
            corrs = X.corrwith(pd.Series(y)).abs()
            best = corrs.idxmax()
            selected.append(best)
            self._record(steps, 'Fallback', best, '-', np.nan,
                         _fit_ols(X, y, selected).rsquared)

        self.steps_ = pd.DataFrame(
            steps,
            columns=['Step', 'Action', 'Feature', 'Measure', 'Statistic',
                     'R2'],
        )
        return [f for f in all_features if f in selected]

    def _score(self, res):
        return res.aic if self.criterion == 'aic' else res.bic

    def _baseline(self, X, y, selected):
        """Fit of the current model (intercept-only when empty)."""
        if selected:
            return _fit_ols(X, y, selected)
        return sm.OLS(y, np.ones((len(y), 1))).fit()

    def _forward_step(self, X, y, selected, steps):
        remaining = [f for f in X.columns if f not in selected]
        if not remaining:
            return False

        current = self._baseline(X, y, selected)
        best_stat, best_feat, best_res = None, None, None
        for feat in remaining:
            res = _fit_ols(X, y, selected + [feat])
            if self.criterion == 'f-test':
                df_resid = max(res.df_resid, 1)
                if res.ssr <= 0:
                    f_stat = np.inf
                else:
                    f_stat = (current.ssr - res.ssr) / (res.ssr / df_resid)
                if best_stat is None or f_stat > best_stat:
                    best_stat, best_feat, best_res = f_stat, feat, res
            else:
                score = self._score(res)
                if best_stat is None or score < best_stat:
                    best_stat, best_feat, best_res = score, feat, res

        # Stopping rule
        if self.criterion == 'f-test':
            f_crit = stats.f.ppf(1 - self.alpha, 1, max(best_res.df_resid, 1))
            accept = best_stat >= f_crit
            label = f"F={best_stat:.1f} vs {f_crit:.2f}"
        else:
            current_score = self._score(current)
            accept = best_stat < current_score - 1e-9
            label = (f"{self.criterion.upper()}={best_stat:.1f} "
                     f"vs {current_score:.1f}")

        if not accept:
            if self.verbose:
                print(f"  Add?   {best_feat:20s}  {label}  Reject")
            return False

        selected.append(best_feat)
        measure = 'F' if self.criterion == 'f-test' else self.criterion.upper()
        self._record(steps, 'Add', best_feat, measure, best_stat,
                     best_res.rsquared)
        if self.verbose:
            print(f"  Add    {best_feat:20s}  {label}  "
                  f"R²={best_res.rsquared*100:6.2f}%")
        return True

    def _backward_step(self, X, y, selected, steps):
        if not selected:
            return False

        current = _fit_ols(X, y, selected)
        if self.criterion == 'f-test':
            pvals = current.pvalues.drop('const')
            worst = pvals.idxmax()
            if pvals[worst] <= self.alpha:
                return False
            selected.remove(worst)
            res = self._baseline(X, y, selected)
            self._record(steps, 'Remove', worst, 'p', pvals[worst],
                         res.rsquared)
            if self.verbose:
                print(f"  Remove {worst:20s}  p={pvals[worst]:.4f} > "
                      f"{self.alpha}  R²={res.rsquared*100:6.2f}%")
            return True

        current_score = self._score(current)
        best_score, best_feat, best_res = None, None, None
        for feat in selected:
            res = self._baseline(X, y, [f for f in selected if f != feat])
            score = self._score(res)
            if best_score is None or score < best_score:
                best_score, best_feat, best_res = score, feat, res
        if best_score >= current_score - 1e-9:
            return False
        selected.remove(best_feat)
        self._record(steps, 'Remove', best_feat, self.criterion.upper(),
                     best_score, best_res.rsquared)
        if self.verbose:
            print(f"  Remove {best_feat:20s}  "
                  f"{self.criterion.upper()}={best_score:.1f} vs "
                  f"{current_score:.1f}  R²={best_res.rsquared*100:6.2f}%")
        return True

    @staticmethod
    def _record(steps, action, feat, measure, stat, r2):
        steps.append({'Step': len(steps) + 1, 'Action': action,
                      'Feature': feat, 'Measure': measure,
                      'Statistic': stat, 'R2': r2})


# ---------------------------------------------------------------------------
# Model zoo
# ---------------------------------------------------------------------------

def build_models(random_state=RANDOM_STATE, poly_degree=POLY_DEGREE,
                 alpha=ALPHA, tune_svr=False, cv_folds=CV_FOLDS):
    """
    Return the candidate models keyed by display name, in report order.

    Parameters
    ----------
    random_state : int
        Seed for the random forest and the SVR tuning folds.
    poly_degree : int
        Degree of the polynomial regression.
    alpha : float
        Significance level for the stepwise F-tests.
    tune_svr : bool
        Grid-search C, gamma and epsilon for the SVR.
    cv_folds : int
        Folds used by the SVR grid search.
    """
    if poly_degree < 1:
        raise ValueError(f"poly_degree must be >= 1, got {poly_degree}")

    svr = Pipeline([
        ('scaler', StandardScaler()),
        ('svr', SVR(**SVR_PARAMS)),
    ])
    if tune_svr:
        svr = GridSearchCV(
            svr, SVR_GRID,
            cv=KFold(n_splits=max(cv_folds, 2), shuffle=True,
                     random_state=random_state),
            scoring='neg_root_mean_squared_error',
            n_jobs=-1,
        )

    return {
        'OLS': OLSRegressor(),
        'Stepwise (forward)': StepwiseRegressor(direction='forward',
                                                alpha=alpha),
        'Stepwise (backward)': StepwiseRegressor(direction='backward',
                                                 alpha=alpha),
        'Stepwise (both)': StepwiseRegressor(direction='both', alpha=alpha),
        f'Polynomial (degree {poly_degree})': Pipeline([
            ('scaler', StandardScaler()),
            ('poly', PolynomialFeatures(degree=poly_degree,
                                        include_bias=False)),
            ('ols', LinearRegression()),
        ]),
        'Random Forest': RandomForestRegressor(random_state=random_state,
                                               **RF_PARAMS),
        'SVR': svr,
    }


def _final_estimator(model):
    if isinstance(model, GridSearchCV):
        model = model.best_estimator_
    if isinstance(model, Pipeline):
        model = model.steps[-1][1]
    return model


def feature_importance(model, feature_names, X=None, y=None,
                       random_state=RANDOM_STATE):
    """
    Importance of each input feature for a fitted model.

    - random forest: impurity importances;
    - OLS / stepwise: standardised coefficients, coef * sd(x) / sd(y), when
      X and y are given, else raw coefficients (unselected features get 0);
    - anything else: permutation importance on (X, y).

    Returns
    -------
    pd.Series
        Indexed by feature, sorted by absolute importance (descending).
    """
    feature_names = list(feature_names)
    final = _final_estimator(model)

    if hasattr(final, 'feature_importances_'):
        imp = pd.Series(final.feature_importances_, index=feature_names)
    elif isinstance(model, OLSRegressor):
        coefs = model.coef_.reindex(feature_names).fillna(0.0)
        if X is not None and y is not None:
            X = pd.DataFrame(X, columns=feature_names)
            sd_y = float(np.std(np.asarray(y, dtype=np.float64)))
            sd_x = X.std(ddof=0)
            imp = coefs * sd_x / sd_y if sd_y > 0 else coefs
        else:
            imp = coefs
    elif X is not None and y is not None:
        result = permutation_importance(
            model, X, y, n_repeats=5, random_state=random_state,
        )
        imp = pd.Series(result.importances_mean, index=feature_names)
    else:
        raise ValueError(
            f"{type(final).__name__} has no built-in importances; "
            f"pass X and y for permutation importance."
        )

    return imp.reindex(imp.abs().sort_values(ascending=False).index)
