"""
Example: the report on dirty / messy data
==========================================
Demonstrates the automatic data cleaning step.

The report handles:
  - Raw UCI-style column headers → mapped to canonical names
  - Missing values (NaN) in components → median imputation
  - Missing or infinite strength → rows dropped
  - Infinite component values → replaced by column max/min
  - Non-numeric and zero-variance columns → dropped
  - Duplicate rows → dropped

All cleaning actions are reported transparently.
"""

import numpy as np
import pandas as pd

# If running from the repo root (not pip-installed), uncomment:
# import sys; sys.path.insert(0, '..')

from concrete_strength import run_report, simulate_concrete

# ------------------------------------------------------------------
# 1.  Generate clean data, then make it dirty
# ------------------------------------------------------------------
df = simulate_concrete(n=800, random_state=7)
rng = np.random.RandomState(42)

dirty = df.copy()
dirty.loc[rng.choice(len(dirty), 40, replace=False), 'Cement'] = np.nan
dirty.loc[rng.choice(len(dirty), 15, replace=False), 'Strength'] = np.nan
dirty.loc[3, 'Water'] = np.inf
dirty['Plant'] = 'North'              # non-numeric
dirty['Batch'] = 1.0                  # zero variance
dirty = pd.concat([dirty, dirty.iloc[:20]], ignore_index=True)   # duplicates

# UCI-style headers
dirty = dirty.rename(columns={
    'Cement': 'Cement (component 1)(kg in a m^3 mixture)',
    'Water': 'Water  (component 4)(kg in a m^3 mixture)',
    'Age': 'Age (day)',
    'Strength': 'Concrete compressive strength(MPa, megapascals) ',
})

print(f"Dirty dataset: n={len(dirty)}, columns={dirty.shape[1]}\n")

# ------------------------------------------------------------------
# 2.  Run the report; cleaning happens in step 1
# ------------------------------------------------------------------
report = run_report(dirty, verbose=True, cv_folds=3)

print("\nCleaning actions:")
for action in report.cleaning_actions_:
    print(f"  * {action}")
