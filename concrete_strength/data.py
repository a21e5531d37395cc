"""
Loading, cleaning and transforming concrete mix-design data.
"""

import os

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.linear_model import LinearRegression

from .config import (
    FEATURE_COLS, TARGET_COL, ID_COL, RAW_COLUMN_ALIASES,
    DEFAULT_TRANSFORMS, OUTLIER_FACTOR, RANDOM_STATE,
)


# ---------------------------------------------------------------------------
# Transformation helpers
# ---------------------------------------------------------------------------

TRANSFORM_TYPES = ['Linear', 'Logarithmic', 'Sqrt', 'Square', 'Inverse']


def apply_transform(x, transform_type):
    """
    Apply one of the monotone transformations to a numeric array.

    Parameters
    ----------
    x : array-like
        Input values (1-D).
    transform_type : str
        One of: 'Linear', 'Logarithmic', 'Sqrt', 'Square', 'Inverse'.

    Returns
    -------
    np.ndarray
        Transformed values with any non-finite entries replaced by 0.
    """
    x = np.asarray(x, dtype=np.float64).ravel()

    if transform_type == 'Linear':
        result = x
    elif transform_type == 'Logarithmic':
        result = np.log(x + 1)
    elif transform_type == 'Sqrt':
        result = np.sqrt(np.abs(x))
    elif transform_type == 'Square':
        result = x ** 2
    elif transform_type == 'Inverse':
        result = 1.0 / (x + 1)
    else:
        raise ValueError(f"Unknown transform: {transform_type}")

    if not np.all(np.isfinite(result)):
        result = np.nan_to_num(result, nan=0.0, posinf=0.0, neginf=0.0)

    return result


def screen_transforms(X, y):
    """
    Test every transform for each feature against the response.

    A one-variable linear regression is fitted per (feature, transform)
    pair and the transform with the highest R² is kept.  The linear R² is
    reported alongside so the gain from transforming is visible.

    Returns
    -------
    pd.DataFrame
        Columns Feature, Transform, R2, Linear_R2 sorted by R2.
    """
    y = np.asarray(y, dtype=np.float64).ravel()
    rows = []
    for feat in X.columns:
        best_r2, best_tf, linear_r2 = -1.0, None, np.nan
        for tf in TRANSFORM_TYPES:
            xt = apply_transform(X[feat].values, tf).reshape(-1, 1)
            # Guard against constant columns after transform
            if np.std(xt) == 0:
                continue
            r2 = LinearRegression().fit(xt, y).score(xt, y)
            if tf == 'Linear':
                linear_r2 = r2
            if r2 > best_r2:
                best_r2, best_tf = r2, tf
        rows.append({'Feature': feat, 'Transform': best_tf, 'R2': best_r2,
                     'Linear_R2': linear_r2})

    return (pd.DataFrame(rows)
            .sort_values('R2', ascending=False)
            .reset_index(drop=True))


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def standardize_columns(df):
    """
    Map the long UCI / Kaggle headers onto the canonical column names.

    Headers that are already canonical are kept; the first alias that
    matches a header wins and each canonical name is used once.  Columns
    that match nothing (an id column, for instance) are preserved.
    """
    df = df.copy()
    df.columns = [str(c).strip() for c in df.columns]

    canonical = set(FEATURE_COLS) | {TARGET_COL}
    used = {c for c in df.columns if c in canonical}
    renames = {}
    for col in df.columns:
        if col in canonical:
            continue
        if col.lower() == ID_COL:
            renames[col] = ID_COL
            continue
        lowered = col.lower()
        for alias, name in RAW_COLUMN_ALIASES:
            if alias in lowered and name not in used:
                renames[col] = name
                used.add(name)
                break

    return df.rename(columns=renames)


def load_dataset(path):
    """Read a CSV or Excel file and standardise its column names."""
    if not os.path.exists(path):
        raise FileNotFoundError(
            f"Dataset not found at: {path}\n"
            "Download the Concrete Compressive Strength data from UCI and "
            "pass its path, e.g. --data Concrete_Data.xls"
        )

    ext = os.path.splitext(path)[1].lower()
    if ext == '.csv':
        df = pd.read_csv(path)
    elif ext in ('.xls', '.xlsx'):
        df = pd.read_excel(path)
    else:
        raise ValueError(f"Unsupported file type '{ext}' for {path}")

    return standardize_columns(df)


def simulate_concrete(n=1030, random_state=RANDOM_STATE):
    """
    Generate a synthetic mix-design dataset with the canonical columns.

    Component ranges follow the UCI data (kg per m³ of mixture).  Strength
    rises with cement, slag and log curing age and falls with water; the
    aggregates carry no signal.
    """
    rng = np.random.RandomState(random_state)

    def _sometimes(p_zero, low, high):
        vals = rng.uniform(low, high, n)
        vals[rng.rand(n) < p_zero] = 0.0
        return vals

    ages = np.array([1, 3, 7, 14, 28, 56, 90, 180, 270, 365])
    age_p = np.array([0.02, 0.13, 0.12, 0.06, 0.41, 0.09, 0.08, 0.04,
                      0.02, 0.03])

    df = pd.DataFrame({
        'Cement': rng.uniform(102, 540, n),
        'BlastFurnaceSlag': _sometimes(0.46, 11, 360),
        'FlyAsh': _sometimes(0.55, 24, 200),
        'Water': rng.uniform(122, 247, n),
        'Superplasticizer': _sometimes(0.37, 1.7, 32),
        'CoarseAggregate': rng.uniform(801, 1145, n),
        'FineAggregate': rng.uniform(594, 993, n),
        'Age': rng.choice(ages, size=n, p=age_p / age_p.sum()),
    })

    strength = (
        0.11 * df['Cement']
        + 0.08 * df['BlastFurnaceSlag']
        + 0.05 * df['FlyAsh']
        - 0.18 * df['Water']
        + 0.25 * df['Superplasticizer']
        + 9.0 * np.log(df['Age'])
        + rng.randn(n) * 4.0
    )
    df[TARGET_COL] = np.clip(strength, 2.0, 85.0).round(2)

    return df


# ---------------------------------------------------------------------------
# Cleaning
# ---------------------------------------------------------------------------

def feature_columns(df, target=TARGET_COL):
    """Return the predictor columns of ``df`` (everything but target / id)."""
    return [c for c in df.columns if c not in (target, ID_COL)]


def clean_dataset(df, target=TARGET_COL, verbose=False):
    """
    Validate and clean a mix-design table.

    Cleaning steps
    --------------
    1.  Coerce predictors and the response to numeric.
    2.  Drop rows where the response is NaN or infinite.
    3.  Drop exact duplicate rows.
    4.  Impute NaN in predictors with column medians.
    5.  Replace infinities in predictors with column max/min.
    6.  Drop zero-variance predictors other than the mix-design columns.

    Returns
    -------
    clean_df : pd.DataFrame
    actions : list of str
        A description of every cleaning action taken.
    """
    if target not in df.columns:
        raise ValueError(f"Response column '{target}' not found in data.")

    df = df.copy().reset_index(drop=True)
    features = feature_columns(df, target)
    actions = []

    # --- Coerce types -----------------------------------------------------
    for col in features + [target]:
        before = df[col].isna().sum()
        df[col] = pd.to_numeric(df[col], errors='coerce')
        coerced = df[col].isna().sum() - before
        if coerced > 0:
            actions.append(
                f"Coerced {coerced} non-numeric value(s) to NaN in '{col}'"
            )

    all_nan_cols = [c for c in features if df[c].isna().all()]
    if all_nan_cols:
        actions.append(
            f"Dropped {len(all_nan_cols)} all-NaN column(s): {all_nan_cols}"
        )
        df = df.drop(columns=all_nan_cols)
        features = [c for c in features if c not in all_nan_cols]

    if not features:
        raise ValueError("No numeric predictor columns remain after cleaning.")

    # --- Drop rows where the response is NaN / infinite --------------------
    bad_y = ~np.isfinite(df[target].astype(float))
    if bad_y.any():
        actions.append(
            f"Dropped {bad_y.sum()} row(s) where the response was "
            f"missing or infinite"
        )
        df = df.loc[~bad_y].reset_index(drop=True)

    # --- Duplicates ---------------------------------------------------------
    dup_mask = df.duplicated(subset=features + [target])
    if dup_mask.any():
        actions.append(f"Dropped {dup_mask.sum()} duplicate row(s)")
        df = df.loc[~dup_mask].reset_index(drop=True)

    # --- Impute NaN with column medians ------------------------------------
    nan_counts = df[features].isna().sum()
    cols_with_nan = nan_counts[nan_counts > 0]
    if len(cols_with_nan) > 0:
        details = ", ".join(f"{c}({n})" for c, n in cols_with_nan.items())
        actions.append(
            f"Imputed NaN with column medians in {len(cols_with_nan)} "
            f"column(s): {details}"
        )
        df[features] = df[features].fillna(df[features].median())

    # --- Replace infinities with column max/min ----------------------------
    inf_mask = ~np.isfinite(df[features].values.astype(float))
    if inf_mask.any():
        actions.append(
            f"Replaced {inf_mask.sum()} infinite value(s) in predictors "
            f"with column max/min"
        )
        for col in features:
            col_vals = df[col]
            finite_vals = col_vals[np.isfinite(col_vals)]
            if len(finite_vals) == 0:
                df[col] = 0.0
            else:
                df[col] = col_vals.replace(
                    [np.inf], finite_vals.max()
                ).replace([-np.inf], finite_vals.min())

    # --- Zero-variance predictors -------------------------------------------
    # Constant mix-design columns stay: the ratios are built from them
    constant = [c for c in features if df[c].std() == 0]
    kept = [c for c in constant if c in FEATURE_COLS]
    if kept:
        actions.append(
            f"Kept {len(kept)} constant mix-design column(s) for the ratios "
            f"(not modelled): {kept}"
        )
    zero_var_cols = [c for c in constant if c not in FEATURE_COLS]
    if zero_var_cols:
        actions.append(
            f"Dropped {len(zero_var_cols)} zero-variance column(s): "
            f"{zero_var_cols}"
        )
        df = df.drop(columns=zero_var_cols)
        features = [c for c in features if c not in zero_var_cols]

    if not features:
        raise ValueError("No predictor columns remain after cleaning.")

    if len(df) < 10:
        raise ValueError(
            f"Only {len(df)} observations remain after cleaning. "
            f"At least 10 rows are required."
        )

    if verbose:
        if actions:
            for action in actions:
                print(f"  * {action}")
        else:
            print("  * No cleaning required")
        print(f"  Final dataset: n={len(df)}, p={len(features)}")

    return df, actions


def cap_outliers(df, columns, factor=OUTLIER_FACTOR, bounds=None):
    """
    Winsorise columns to the Tukey fences [Q1 - k·IQR, Q3 + k·IQR].

    Parameters
    ----------
    df : pd.DataFrame
    columns : list of str
    factor : float, default=1.5
        IQR multiplier k.
    bounds : pd.DataFrame or None
        Fences from an earlier call (e.g. on the training split).  When
        given they are applied as-is instead of being recomputed.

    Returns
    -------
    capped : pd.DataFrame
    bounds : pd.DataFrame
        Indexed by column with 'lower', 'upper' and 'n_capped'.
    """
    capped = df.copy()
    rows = []
    for col in columns:
        if bounds is not None and col in bounds.index:
            lower = bounds.loc[col, 'lower']
            upper = bounds.loc[col, 'upper']
        else:
            q1, q3 = capped[col].quantile([0.25, 0.75])
            iqr = q3 - q1
            if iqr == 0:
                # Mostly-zero columns (slag, fly ash) would be flattened
                lower, upper = capped[col].min(), capped[col].max()
            else:
                lower, upper = q1 - factor * iqr, q3 + factor * iqr
        n_capped = int(((capped[col] < lower) | (capped[col] > upper)).sum())
        capped[col] = capped[col].clip(lower, upper)
        rows.append({'Feature': col, 'lower': lower, 'upper': upper,
                     'n_capped': n_capped})

    return capped, pd.DataFrame(rows).set_index('Feature')


# ---------------------------------------------------------------------------
# Feature engineering
# ---------------------------------------------------------------------------

def engineer_features(df, transforms=None, features=None):
    """
    Build the model matrix from raw mix-design rows.

    Adds the water/cement and water/binder ratios, then applies
    a per-column transform map (default: log curing age).  The function is
    stateless so it prepares training rows, test rows and hypothetical
    mixes identically.

    ``features`` restricts the result to those model columns, e.g. to leave
    out a component that is constant in the training data.

    Returns
    -------
    pd.DataFrame
        Predictor columns only, in canonical order.
    """
    if transforms is None:
        transforms = DEFAULT_TRANSFORMS

    missing = [c for c in FEATURE_COLS if c not in df.columns]
    if missing:
        raise ValueError(f"Missing mix-design column(s): {missing}")

    X = df[FEATURE_COLS].astype(float).copy()

    cement = X['Cement'].where(X['Cement'] > 0)
    X['WaterCementRatio'] = (X['Water'] / cement).fillna(0.0)
    binder = X['Cement'] + X['BlastFurnaceSlag'] + X['FlyAsh']
    X['WaterBinderRatio'] = (
        X['Water'] / binder.where(binder > 0)
    ).fillna(0.0)

    for col, tf in transforms.items():
        if col not in X.columns:
            raise ValueError(f"Cannot transform unknown column '{col}'")
        X[col] = apply_transform(X[col].values, tf)

    if features is not None:
        unknown = [f for f in features if f not in X.columns]
        if unknown:
            raise ValueError(f"Unknown model column(s): {unknown}")
        X = X[list(features)]

    return X.reset_index(drop=True)


class OutlierCapper(TransformerMixin, BaseEstimator):
    """
    Transformer form of :func:`cap_outliers`.

    The fences are learnt on the data passed to ``fit`` and applied
    unchanged by ``transform``, so test rows are capped at the training
    fences.
    """

    def __init__(self, factor=OUTLIER_FACTOR):
        self.factor = factor

    def fit(self, X, y=None):
        X = pd.DataFrame(X)
        _, self.bounds_ = cap_outliers(X, list(X.columns), self.factor)
        return self

    def transform(self, X):
        if not hasattr(self, 'bounds_'):
            raise RuntimeError(
                "OutlierCapper has not been fitted. Call .fit(X) first."
            )
        X = pd.DataFrame(X)
        capped, _ = cap_outliers(X, list(X.columns), self.factor,
                                 bounds=self.bounds_)
        return capped
