"""
Dataset layout and report defaults.
"""

# ---------------------------------------------------------------------------
# Dataset
# ---------------------------------------------------------------------------

FEATURE_COLS = [
    'Cement', 'BlastFurnaceSlag', 'FlyAsh', 'Water',
    'Superplasticizer', 'CoarseAggregate', 'FineAggregate', 'Age',
]
TARGET_COL = 'Strength'
ID_COL = 'id'

# Lower-cased substrings of the UCI / Kaggle headers, e.g.
# "Blast Furnace Slag (component 2)(kg in a m^3 mixture)"
RAW_COLUMN_ALIASES = [
    ('cement', 'Cement'),
    ('slag', 'BlastFurnaceSlag'),
    ('fly', 'FlyAsh'),
    ('ash', 'FlyAsh'),
    ('water', 'Water'),
    ('superplastic', 'Superplasticizer'),
    ('coarse', 'CoarseAggregate'),
    ('fine', 'FineAggregate'),
    ('age', 'Age'),
    ('strength', 'Strength'),
]

# Features added by engineer_features()
ENGINEERED_COLS = ['WaterCementRatio', 'WaterBinderRatio']

# Log curing age (the well-known curing curve)
DEFAULT_TRANSFORMS = {'Age': 'Logarithmic'}

UCI_URL = (
    "https://archive.ics.uci.edu/ml/machine-learning-databases/"
    "concrete/compressive/Concrete_Data.xls"
)

# ---------------------------------------------------------------------------
# Report defaults
# ---------------------------------------------------------------------------

RANDOM_STATE = 42
TEST_SIZE = 0.2
CV_FOLDS = 5
ALPHA = 0.05
POLY_DEGREE = 2
OUTLIER_FACTOR = 1.5
VIF_THRESHOLD = 10.0
REFERENCE_AGE = 28      # days

RF_PARAMS = {
    'n_estimators': 400,
    'max_depth': None,
    'min_samples_leaf': 1,
    'n_jobs': -1,
}

SVR_PARAMS = {
    'kernel': 'rbf',
    'C': 100.0,
    'gamma': 'scale',
    'epsilon': 0.5,
}

SVR_GRID = {
    'svr__C': [10.0, 100.0, 300.0],
    'svr__gamma': ['scale', 0.05, 0.2],
    'svr__epsilon': [0.1, 0.5, 1.0],
}
