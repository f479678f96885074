"""
Dataset schema and analysis defaults for the Auto MPG regression report.

The raw file is whitespace-delimited with no header line:
mpg, cylinders, displacement, horsepower, weight, acceleration,
model_year, origin, car_name
"""

AUTO_MPG_URL = (
    "https://archive.ics.uci.edu/ml/machine-learning-databases/auto-mpg/auto-mpg.data"
)

RAW_COLUMNS = [
    "mpg",
    "cylinders",
    "displacement",
    "horsepower",
    "weight",
    "acceleration",
    "model_year",
    "origin",
    "car_name",
]

ID_COLUMN = "car_name"
TARGET_COLUMN = "mpg"
LOG_TARGET_COLUMN = "log_mpg"

# Columns that may carry the '?' placeholder
NUMERIC_COERCE_COLUMNS = ["horsepower", "mpg"]

CONTINUOUS_COLUMNS = [
    "cylinders",
    "displacement",
    "horsepower",
    "weight",
    "acceleration",
    "model_year",
]

NOMINAL_COLUMNS = ["origin"]

ORIGIN_LEVELS = [1, 2, 3]
ORIGIN_LABELS = {1: "American", 2: "European", 3: "Japanese"}

MISSING_TOKENS = ["?"]
HORSEPOWER_POLICIES = ("keep", "drop", "median")

# Analysis defaults
VIF_THRESHOLD = 5.0
TOP_N_EXTREME = 5
CV_FOLDS = 10
RANDOM_STATE = 42
ALPHA = 0.05

BOX_COX_LAMBDA_MIN = -2.0
BOX_COX_LAMBDA_MAX = 2.0
BOX_COX_LAMBDA_STEP = 0.01
BOX_COX_ROUND_LAMBDAS = (-2.0, -1.0, -0.5, 0.0, 0.5, 1.0, 2.0)

INTERACTION_DEFAULTS = ["weight", "horsepower", "model_year"]
