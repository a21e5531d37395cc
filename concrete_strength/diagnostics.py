"""
Assumption diagnostics for the linear models.

Normality of residuals, multicollinearity, heteroscedasticity and
autocorrelation, each as a plain dict of statistics plus a verdict at the
chosen significance level.
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import statsmodels.api as sm
from scipy import stats
from statsmodels.stats.diagnostic import het_breuschpagan
from statsmodels.stats.outliers_influence import variance_inflation_factor
from statsmodels.stats.stattools import durbin_watson
import warnings
warnings.filterwarnings('ignore')

from .config import ALPHA, VIF_THRESHOLD


# ---------------------------------------------------------------------------
# Individual tests
# ---------------------------------------------------------------------------

def normality_tests(residuals, alpha=ALPHA):
    """Shapiro-Wilk, Jarque-Bera and Anderson-Darling on the residuals."""
    residuals = np.asarray(residuals, dtype=np.float64).ravel()
    n = len(residuals)
    out = {
        'n': n,
        'skewness': float(stats.skew(residuals)),
        'kurtosis': float(stats.kurtosis(residuals)),
    }

    # Shapiro-Wilk p-values are unreliable above 5000 observations
    if 3 <= n <= 5000:
        sw_stat, sw_p = stats.shapiro(residuals)
        out['shapiro_wilk'] = {
            'statistic': float(sw_stat),
            'p_value': float(sw_p),
            'is_normal': bool(sw_p > alpha),
        }

    jb_stat, jb_p = stats.jarque_bera(residuals)
    out['jarque_bera'] = {
        'statistic': float(jb_stat),
        'p_value': float(jb_p),
        'is_normal': bool(jb_p > alpha),
    }

    ad = stats.anderson(residuals, dist='norm')
    # critical_values line up with significance levels 15, 10, 5, 2.5, 1 %
    crit_5 = float(ad.critical_values[2])
    out['anderson_darling'] = {
        'statistic': float(ad.statistic),
        'critical_value_5pct': crit_5,
        'is_normal': bool(ad.statistic < crit_5),
    }

    return out


def vif_table(X, threshold=VIF_THRESHOLD):
    """
    Variance inflation factor of every column of ``X``.

    Computed on the design with an added constant; the constant itself is
    not reported.
    """
    X = pd.DataFrame(X).astype(float)
    design = sm.add_constant(X, has_constant='add')
    rows = []
    for i, col in enumerate(design.columns):
        if col == 'const':
            continue
        with np.errstate(divide='ignore', invalid='ignore'):
            vif = variance_inflation_factor(design.values, i)
        rows.append({
            'Feature': col,
            'VIF': float(vif),
            'High': bool(not np.isfinite(vif) or vif > threshold),
        })
    return (pd.DataFrame(rows)
            .sort_values('VIF', ascending=False)
            .reset_index(drop=True))


def multicollinearity(X, threshold=VIF_THRESHOLD):
    vifs = vif_table(X, threshold)
    design = sm.add_constant(pd.DataFrame(X).astype(float),
                             has_constant='add')
    return {
        'vif': vifs,
        'max_vif': float(vifs['VIF'].max()) if len(vifs) else np.nan,
        'high_vif_features': vifs.loc[vifs['High'], 'Feature'].tolist(),
        'condition_number': float(np.linalg.cond(design.values)),
        'threshold': threshold,
    }


def heteroscedasticity(residuals, X, alpha=ALPHA):
    """Breusch-Pagan test of the squared residuals on the regressors."""
    residuals = np.asarray(residuals, dtype=np.float64).ravel()
    design = sm.add_constant(pd.DataFrame(X).astype(float),
                             has_constant='add')
    lm, lm_p, f_stat, f_p = het_breuschpagan(residuals, design.values)
    return {
        'breusch_pagan': {
            'lm_statistic': float(lm),
            'p_value': float(lm_p),
            'f_statistic': float(f_stat),
            'f_p_value': float(f_p),
            'is_homoscedastic': bool(lm_p > alpha),
        },
    }


def interpret_durbin_watson(dw_stat):
    if dw_stat < 1.5:
        return "Positive autocorrelation likely"
    elif dw_stat > 2.5:
        return "Negative autocorrelation likely"
    return "No strong evidence of autocorrelation"


def autocorrelation(residuals):
    dw = float(durbin_watson(np.asarray(residuals, dtype=np.float64)))
    return {
        'durbin_watson': {
            'statistic': dw,
            'interpretation': interpret_durbin_watson(dw),
            'no_autocorrelation': bool(1.5 <= dw <= 2.5),
        },
    }


# ---------------------------------------------------------------------------
# Combined report
# ---------------------------------------------------------------------------

class AssumptionReport(dict):
    """
    Results of all four assumption checks for one fitted model.

    Behaves as a dict with keys 'normality', 'multicollinearity',
    'heteroscedasticity' and 'autocorrelation' (plus the residuals and
    fitted values used), and adds a one-row-per-test summary.
    """

    def summary_frame(self):
        norm = self['normality']
        rows = []
        if 'shapiro_wilk' in norm:
            sw = norm['shapiro_wilk']
            rows.append(('Normality', 'Shapiro-Wilk', sw['statistic'],
                         sw['p_value'], sw['is_normal']))
        jb = norm['jarque_bera']
        rows.append(('Normality', 'Jarque-Bera', jb['statistic'],
                     jb['p_value'], jb['is_normal']))
        ad = norm['anderson_darling']
        rows.append(('Normality', 'Anderson-Darling', ad['statistic'],
                     np.nan, ad['is_normal']))

        mc = self['multicollinearity']
        rows.append(('Multicollinearity', f"Max VIF (<= {mc['threshold']:g})",
                     mc['max_vif'], np.nan,
                     not mc['high_vif_features']))

        bp = self['heteroscedasticity']['breusch_pagan']
        rows.append(('Homoscedasticity', 'Breusch-Pagan',
                     bp['lm_statistic'], bp['p_value'],
                     bp['is_homoscedastic']))

        dw = self['autocorrelation']['durbin_watson']
        rows.append(('Independence', 'Durbin-Watson', dw['statistic'],
                     np.nan, dw['no_autocorrelation']))

        return pd.DataFrame(
            rows,
            columns=['Assumption', 'Test', 'Statistic', 'p_value', 'Passed'],
        )

    @property
    def all_passed(self):
        return bool(self.summary_frame()['Passed'].all())


def check_assumptions(model, X, y, alpha=ALPHA, vif_threshold=VIF_THRESHOLD):
    """
    Run every assumption check on a fitted linear model.

    Parameters
    ----------
    model : OLSRegressor or any fitted regressor with ``predict``
        For stepwise models only the selected features enter the VIF and
        Breusch-Pagan designs.
    X : pd.DataFrame
        Data the residuals are computed on.
    y : array-like
    alpha : float
        Significance level for the pass / fail verdicts.

    Returns
    -------
    AssumptionReport
    """
    X = pd.DataFrame(X).reset_index(drop=True)
    y = np.asarray(y, dtype=np.float64).ravel()
    fitted = np.asarray(model.predict(X), dtype=np.float64).ravel()
    residuals = y - fitted

    used = getattr(model, 'selected_features_', None) or list(X.columns)
    X_used = X[used]

    return AssumptionReport(
        features=list(used),
        residuals=residuals,
        fitted=fitted,
        normality=normality_tests(residuals, alpha),
        multicollinearity=multicollinearity(X_used, vif_threshold),
        heteroscedasticity=heteroscedasticity(residuals, X_used, alpha),
        autocorrelation=autocorrelation(residuals),
    )


def plot_residual_diagnostics(report, title="Residual Diagnostics",
                              figsize=(12, 9)):
    """
    Four-panel residual plot: residuals vs fitted, normal Q-Q, residual
    histogram and scale-location.
    """
    resid = report['residuals']
    fitted = report['fitted']
    std_resid = resid / resid.std() if resid.std() > 0 else resid

    fig, axes = plt.subplots(2, 2, figsize=figsize)

    ax = axes[0, 0]
    ax.scatter(fitted, resid, alpha=0.3, s=8, color='steelblue')
    ax.axhline(0, color='r', ls='--', lw=1.5)
    ax.set_xlabel("Fitted strength (MPa)")
    ax.set_ylabel("Residual")
    ax.set_title("Residuals vs Fitted")
    ax.grid(True, alpha=0.3)

    ax = axes[0, 1]
    (osm, osr), (slope, intercept, _) = stats.probplot(std_resid,
                                                       dist='norm')
    ax.scatter(osm, osr, alpha=0.3, s=8, color='steelblue')
    ax.plot(osm, slope * osm + intercept, 'r-', lw=1.5)
    ax.set_xlabel("Theoretical quantiles")
    ax.set_ylabel("Standardised residual")
    ax.set_title("Normal Q-Q")
    ax.grid(True, alpha=0.3)

    ax = axes[1, 0]
    ax.hist(resid, bins=30, color='steelblue', alpha=0.8,
            edgecolor='white')
    ax.set_xlabel("Residual")
    ax.set_ylabel("Count")
    ax.set_title("Residual Distribution")
    ax.grid(True, alpha=0.3)

    ax = axes[1, 1]
    ax.scatter(fitted, np.sqrt(np.abs(std_resid)), alpha=0.3, s=8,
               color='steelblue')
    ax.set_xlabel("Fitted strength (MPa)")
    ax.set_ylabel("√|standardised residual|")
    ax.set_title("Scale-Location")
    ax.grid(True, alpha=0.3)

    fig.suptitle(title, fontsize=14)
    fig.tight_layout()
    return fig
