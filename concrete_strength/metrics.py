"""
Evaluation metrics and the model comparison loop.
"""

import time

import numpy as np
import pandas as pd
from sklearn.base import clone
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score
from sklearn.model_selection import KFold, cross_val_score
from sklearn.pipeline import Pipeline

from .config import CV_FOLDS, RANDOM_STATE
from .models import OLSRegressor


def regression_metrics(y_true, y_pred, n_features=None):
    """
    MAE, MSE, RMSE, R², adjusted R² and MAPE for one set of predictions.

    Adjusted R² is 1 - (1 - R²)(n - 1)/(n - p - 1); it is NaN when
    ``n_features`` is unknown or n - p - 1 <= 0.  MAPE ignores rows whose
    true value is zero.
    """
    y_true = np.asarray(y_true, dtype=np.float64).ravel()
    y_pred = np.asarray(y_pred, dtype=np.float64).ravel()
    if len(y_true) != len(y_pred):
        raise ValueError(
            f"y_true has {len(y_true)} values but y_pred has {len(y_pred)}."
        )

    n = len(y_true)
    mse = mean_squared_error(y_true, y_pred)
    r2 = r2_score(y_true, y_pred) if n > 1 else np.nan

    adj_r2 = np.nan
    if n_features is not None and n - n_features - 1 > 0:
        adj_r2 = 1.0 - (1.0 - r2) * (n - 1) / (n - n_features - 1)

    nonzero = y_true != 0
    mape = (np.mean(np.abs((y_true[nonzero] - y_pred[nonzero])
                           / y_true[nonzero])) * 100
            if nonzero.any() else np.nan)

    return {
        'MAE': mean_absolute_error(y_true, y_pred),
        'MSE': mse,
        'RMSE': np.sqrt(mse),
        'R2': r2,
        'Adj_R2': adj_r2,
        'MAPE': mape,
    }


def n_parameters(model, n_features):
    """Number of slope terms a fitted model uses (for adjusted R²)."""
    if isinstance(model, OLSRegressor):
        return len(model.selected_features_)
    if isinstance(model, Pipeline) and 'poly' in model.named_steps:
        return int(model.named_steps['poly'].n_output_features_)
    return n_features


def evaluate_models(models, X_train, y_train, X_test, y_test,
                    cv_folds=CV_FOLDS, random_state=RANDOM_STATE,
                    verbose=False):
    """
    Fit every model and compare them on the train and test splits.

    Each model is cloned before fitting, so the estimators passed in are
    left untouched.  A shuffled k-fold cross-validated R² on the training
    split is added when ``cv_folds >= 2``.

    Returns
    -------
    fitted : dict
        name -> fitted estimator.
    metrics_df : pd.DataFrame
        One row per model, sorted by test RMSE (best first).
    """
    y_train = np.asarray(y_train, dtype=np.float64).ravel()
    y_test = np.asarray(y_test, dtype=np.float64).ravel()
    p = X_train.shape[1]

    fitted = {}
    rows = []
    for name, model in models.items():
        t0 = time.time()

        cv_mean, cv_std = np.nan, np.nan
        if cv_folds and cv_folds >= 2:
            cv = KFold(n_splits=cv_folds, shuffle=True,
                       random_state=random_state)
            scores = cross_val_score(clone(model), X_train, y_train,
                                     cv=cv, scoring='r2')
            cv_mean, cv_std = scores.mean(), scores.std()

        est = clone(model).fit(X_train, y_train)
        k = n_parameters(est, p)
        train = regression_metrics(y_train, est.predict(X_train), k)
        test = regression_metrics(y_test, est.predict(X_test), k)
        fitted[name] = est

        rows.append({
            'Model': name,
            'Train_R2': train['R2'],
            'Test_R2': test['R2'],
            'Test_Adj_R2': test['Adj_R2'],
            'Test_MAE': test['MAE'],
            'Test_RMSE': test['RMSE'],
            'Test_MAPE': test['MAPE'],
            'Train_RMSE': train['RMSE'],
            'CV_R2_mean': cv_mean,
            'CV_R2_std': cv_std,
            'Fit_seconds': time.time() - t0,
        })

        if verbose:
            print(f"  {name:22s}  Test R²={test['R2']:.4f}  "
                  f"RMSE={test['RMSE']:6.3f}  MAE={test['MAE']:6.3f}  "
                  f"CV R²={cv_mean:.4f}")

    metrics_df = (pd.DataFrame(rows)
                  .sort_values('Test_RMSE', kind='stable')
                  .reset_index(drop=True))
    return fitted, metrics_df
