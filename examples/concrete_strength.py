"""
Example: full report on Concrete Compressive Strength
======================================================
This dataset (Yeh, 1998) predicts the 28-day-and-beyond compressive
strength of concrete from its mix design: seven components in kg per m³
of mixture plus the curing age in days.

The report:
  - cleans the data (the UCI file carries 25 duplicate rows),
  - explores distributions, correlations and the curing curve,
  - compares OLS, three stepwise variants, polynomial regression,
    random forest and SVR,
  - checks normality, multicollinearity, heteroscedasticity and
    autocorrelation for the linear models,
  - explains which composition gives the strongest concrete,
  - writes a submission file for a held-back set of mixes.

Note: The dataset is fetched from the UCI ML Repository.
      If the download fails a synthetic dataset with the same columns
      is used instead.
"""

import pandas as pd

# If running from the repo root (not pip-installed), uncomment:
# import sys; sys.path.insert(0, '..')

from concrete_strength import StrengthReport, simulate_concrete
from concrete_strength.config import UCI_URL
from concrete_strength.data import standardize_columns

# ------------------------------------------------------------------
# 1.  Load data
# ------------------------------------------------------------------
try:
    df = standardize_columns(pd.read_excel(UCI_URL))
    print("Loaded Concrete dataset from UCI.\n")
except Exception:
    print("Could not download from UCI.  Using synthetic data.\n")
    df = simulate_concrete()

# Hold back 50 mixes (without strength) to play the role of a test file
holdout = df.sample(50, random_state=0)
train = df.drop(index=holdout.index)
test = holdout.drop(columns=['Strength']).reset_index(drop=True)
test.insert(0, 'id', range(1, len(test) + 1))

# ------------------------------------------------------------------
# 2.  Run the report
# ------------------------------------------------------------------
report = StrengthReport(poly_degree=2, cv_folds=5)
report.run(train, test_df=test, outdir="outputs", verbose=True)

# ------------------------------------------------------------------
# 3.  Look at the pieces
# ------------------------------------------------------------------
print("\nForward stepwise path:")
print(report.models_['Stepwise (forward)'].steps_.to_string(index=False))

print("\nOLS coefficient table:")
print(report.models_['OLS'].summary())

print("\nTop predicted 28-day mixes:")
print(report.insights_['best_mixes'].to_string(index=False))

print("\nSubmission head:")
print(report.submission_.head().to_string(index=False))
