"""
Exploratory analysis of the mix-design table.
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from scipy import stats

from .config import TARGET_COL, ID_COL


def _numeric(df):
    return df.drop(columns=[ID_COL], errors='ignore').select_dtypes(
        include=[np.number])


def summarize(df):
    """
    Descriptive statistics per numeric column.

    Returns the usual count / mean / std / quartiles plus skewness,
    excess kurtosis, the number of zeros (slag, fly ash and
    superplasticizer are absent from many mixes) and the number missing.
    """
    num = _numeric(df)
    desc = num.describe().T
    desc['skewness'] = num.apply(lambda c: stats.skew(c.dropna()))
    desc['kurtosis'] = num.apply(lambda c: stats.kurtosis(c.dropna()))
    desc['zeros'] = (num == 0).sum()
    desc['missing'] = num.isna().sum()
    return desc


def correlations(df, target=TARGET_COL, method='pearson'):
    """
    Correlation matrix and each feature's correlation with the target.

    Returns
    -------
    corr : pd.DataFrame
    with_target : pd.Series
        Sorted from most positive to most negative, target excluded.
    """
    num = _numeric(df)
    corr = num.corr(method=method)
    with_target = (corr[target].drop(target)
                   .sort_values(ascending=False))
    return corr, with_target


def strength_by_age(df, target=TARGET_COL):
    """Mean, standard deviation and count of strength per curing age."""
    return (df.groupby('Age')[target]
            .agg(['mean', 'std', 'count'])
            .rename(columns={'mean': 'Mean_Strength', 'std': 'Std_Strength',
                             'count': 'n'}))


# ---------------------------------------------------------------------------
# Figures
# ---------------------------------------------------------------------------

def _grid(n_panels, ncols=3, panel_size=(5, 3.5)):
    nrows = (n_panels + ncols - 1) // ncols
    fig, axes = plt.subplots(
        nrows, ncols,
        figsize=(panel_size[0] * ncols, panel_size[1] * nrows),
    )
    axes = np.atleast_1d(axes).flatten()
    for idx in range(n_panels, len(axes)):
        axes[idx].set_visible(False)
    return fig, axes


def plot_distributions(df, bins=30):
    """Histogram of every numeric column."""
    num = _numeric(df)
    fig, axes = _grid(num.shape[1])
    for ax, col in zip(axes, num.columns):
        ax.hist(num[col].dropna(), bins=bins, color='steelblue', alpha=0.8,
                edgecolor='white')
        ax.set_title(f"{col} (skew={stats.skew(num[col].dropna()):.2f})")
        ax.grid(True, alpha=0.3)
    fig.suptitle("Distributions", fontsize=14, y=1.01)
    fig.tight_layout()
    return fig


def plot_correlation_heatmap(df, target=TARGET_COL, figsize=(9, 8)):
    corr, _ = correlations(df, target)
    fig, ax = plt.subplots(figsize=figsize)
    sns.heatmap(
        corr,
        annot=True,
        fmt='.2f',
        cmap='coolwarm',
        vmin=-1,
        vmax=1,
        square=True,
        annot_kws={"size": 8},
        cbar_kws={"shrink": 0.8},
        ax=ax,
    )
    ax.set_xticklabels(ax.get_xticklabels(), rotation=45, ha='right')
    ax.set_title("Correlation Matrix")
    fig.tight_layout()
    return fig


def plot_feature_vs_target(df, target=TARGET_COL):
    """Scatter of every feature against strength with a linear trend."""
    num = _numeric(df)
    feats = [c for c in num.columns if c != target]
    y = num[target].values
    fig, axes = _grid(len(feats))
    for ax, feat in zip(axes, feats):
        xv = num[feat].values
        ax.scatter(xv, y, alpha=0.2, s=6, color='steelblue')
        if np.std(xv) > 0:
            slope, intercept = np.polyfit(xv, y, 1)
            order = np.argsort(xv)
            ax.plot(xv[order], slope * xv[order] + intercept, 'r-', lw=2)
        r = np.corrcoef(xv, y)[0, 1] if np.std(xv) > 0 else np.nan
        ax.set_title(f"{feat} (r={r:.2f})")
        ax.set_xlabel(feat)
        ax.set_ylabel(target)
        ax.grid(True, alpha=0.3)
    fig.suptitle(f"Features vs {target}", fontsize=14, y=1.01)
    fig.tight_layout()
    return fig
