"""
Which mix composition maximises compressive strength.

Combines the linear model's standardised coefficients, the random forest
importances, the composition of the strongest mixes and the curing curve
into a short written interpretation.
"""

import numpy as np
import pandas as pd

from .config import ALPHA, FEATURE_COLS, REFERENCE_AGE, TARGET_COL
from .data import engineer_features
from .models import feature_importance


def composition_effects(ols, rf, X, y, alpha=ALPHA):
    """
    Per-feature effect table.

    Parameters
    ----------
    ols : fitted OLSRegressor (or StepwiseRegressor)
    rf : fitted model with ``feature_importances_`` or None
    X, y : training data the models were fitted on.

    Returns
    -------
    pd.DataFrame
        Indexed by feature with Coefficient, p_value, Std_Coefficient,
        RF_Importance and Effect ('raises', 'lowers' or 'no clear effect'),
        sorted by absolute standardised coefficient.
    """
    cols = list(X.columns)
    coefs = ols.coef_.reindex(cols)
    pvals = ols.pvalues_.reindex(cols)
    std_coefs = feature_importance(ols, cols, X, y).reindex(cols)

    table = pd.DataFrame({
        'Coefficient': coefs,
        'p_value': pvals,
        'Std_Coefficient': std_coefs,
    })
    if rf is not None:
        table['RF_Importance'] = feature_importance(rf, cols).reindex(cols)
    else:
        table['RF_Importance'] = np.nan

    significant = table['p_value'] < alpha
    table['Effect'] = np.where(
        significant & (table['Coefficient'] > 0), 'raises',
        np.where(significant & (table['Coefficient'] < 0), 'lowers',
                 'no clear effect'),
    )

    order = table['Std_Coefficient'].abs().sort_values(ascending=False).index
    return table.loc[order]


def high_strength_profile(df, target=TARGET_COL, quantile=0.75):
    """
    Mean composition of the strongest mixes against all mixes.

    Mixes at or above the ``quantile`` of strength form the top group.
    The water/cement ratio is included.
    """
    if not 0 < quantile < 1:
        raise ValueError(f"quantile must be in (0, 1), got {quantile}")

    comp = df[FEATURE_COLS].astype(float).copy()
    comp['WaterCementRatio'] = (
        comp['Water'] / comp['Cement'].where(comp['Cement'] > 0)
    )
    cutoff = df[target].quantile(quantile)
    top = comp.loc[df[target].values >= cutoff]

    all_mean = comp.mean()
    top_mean = top.mean()
    return pd.DataFrame({
        'All_Mean': all_mean,
        'Top_Mean': top_mean,
        'Difference': top_mean - all_mean,
        'Ratio': top_mean / all_mean.where(all_mean != 0),
    })


def best_mixes(model, df, age=REFERENCE_AGE, top=5, transforms=None,
               features=None):
    """
    Observed compositions ranked by predicted strength at a fixed age.

    Every distinct composition in ``df`` is re-aged to ``age`` days and
    scored with ``model``, which must take the ``engineer_features``
    matrix restricted to ``features``.
    """
    composition = [c for c in FEATURE_COLS if c != 'Age']
    mixes = (df[composition].astype(float)
             .drop_duplicates()
             .reset_index(drop=True))
    mixes['Age'] = float(age)

    preds = model.predict(engineer_features(mixes, transforms, features))

    out = mixes.copy()
    out['WaterCementRatio'] = out['Water'] / out['Cement'].where(
        out['Cement'] > 0)
    out['Predicted_Strength'] = np.asarray(preds, dtype=np.float64)
    return (out.sort_values('Predicted_Strength', ascending=False)
            .head(top)
            .reset_index(drop=True))


def _nearest(index, value):
    values = np.asarray(index)
    return values[np.argmin(np.abs(values.astype(np.float64) - value))]


def narrative(effects, profile, by_age, best, alpha=ALPHA):
    """
    Build the written interpretation from the computed tables.

    Returns
    -------
    list of str
        One paragraph per finding.
    """
    paragraphs = []

    raw = [f for f in effects.index if f in FEATURE_COLS]
    raises = [f for f in raw if effects.loc[f, 'Effect'] == 'raises']
    lowers = [f for f in raw if effects.loc[f, 'Effect'] == 'lowers']

    def fmt(f):
        return f"{f} ({effects.loc[f, 'Std_Coefficient']:+.2f})"

    if raises:
        text = ("Holding the rest of the mix fixed, strength rises with "
                + ", ".join(fmt(f) for f in raises))
        if lowers:
            text += " and falls with " + ", ".join(fmt(f) for f in lowers)
        paragraphs.append(
            text + f" (standardised OLS coefficients, p < {alpha})."
        )
    elif lowers:
        paragraphs.append(
            "Strength falls with " + ", ".join(fmt(f) for f in lowers)
            + f" (standardised OLS coefficients, p < {alpha})."
        )
    else:
        paragraphs.append(
            f"No mix component is individually significant at "
            f"p < {alpha} in the linear model."
        )

    rf_imp = effects['RF_Importance'].dropna()
    if len(rf_imp):
        top3 = rf_imp.sort_values(ascending=False).head(3)
        paragraphs.append(
            "The random forest relies most on "
            + ", ".join(f"{f} ({v*100:.1f}%)" for f, v in top3.items())
            + " of its total impurity reduction."
        )

    if 'WaterCementRatio' in profile.index:
        wc = profile.loc['WaterCementRatio']
        paragraphs.append(
            f"The strongest quarter of mixes averages a water/cement ratio "
            f"of {wc['Top_Mean']:.2f} against {wc['All_Mean']:.2f} "
            f"overall, and carries "
            f"{profile.loc['Cement', 'Top_Mean']:.0f} kg/m³ of cement "
            f"against {profile.loc['Cement', 'All_Mean']:.0f}."
        )

    if len(by_age) >= 2:
        ages = by_age.index.values
        first, last = ages.min(), ages.max()
        ref = _nearest(ages, REFERENCE_AGE)
        s_first = by_age.loc[first, 'Mean_Strength']
        s_ref = by_age.loc[ref, 'Mean_Strength']
        s_last = by_age.loc[last, 'Mean_Strength']
        text = (f"Mean strength grows from {s_first:.1f} MPa at "
                f"{first:g} day(s) to {s_ref:.1f} MPa at {ref:g} days and "
                f"{s_last:.1f} MPa at {last:g} days")
        total_gain = s_last - s_first
        if total_gain > 0 and first < ref < last:
            share = (s_ref - s_first) / total_gain * 100
            text += (f"; about {share:.0f}% of the long-term gain is "
                     f"reached by {ref:g} days")
        paragraphs.append(text + ".")

    if len(best):
        b = best.iloc[0]
        parts = [f"{b[c]:.0f} kg/m³ {c}" for c in FEATURE_COLS
                 if c != 'Age' and b[c] > 0]
        paragraphs.append(
            f"The highest predicted strength at {b['Age']:g} days "
            f"({b['Predicted_Strength']:.1f} MPa) comes from a mix of "
            + ", ".join(parts)
            + f" (water/cement ratio {b['WaterCementRatio']:.2f})."
        )

    return paragraphs
