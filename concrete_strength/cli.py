"""
Command-line entry point.

    concrete-report --data Concrete_Data.xls --test test.csv --outdir outputs

Without --data a synthetic dataset is analysed.
"""

import argparse

import matplotlib
matplotlib.use("Agg")

from .config import (
    ALPHA, CV_FOLDS, POLY_DEGREE, RANDOM_STATE, TEST_SIZE,
)
from .data import load_dataset, simulate_concrete
from .report import StrengthReport


def build_parser():
    parser = argparse.ArgumentParser(
        prog="concrete-report",
        description="Exploratory analysis and regression report for "
                    "concrete compressive strength.",
    )
    parser.add_argument("--data", type=str, default=None,
                        help="Training data (.csv, .xls or .xlsx). "
                             "Synthetic data is used when omitted.")
    parser.add_argument("--test", type=str, default=None,
                        help="Mixes to predict for the submission file.")
    parser.add_argument("--outdir", type=str, default="outputs",
                        help="Directory for tables, figures and the "
                             "submission.")
    parser.add_argument("--seed", type=int, default=RANDOM_STATE)
    parser.add_argument("--test-size", type=float, default=TEST_SIZE)
    parser.add_argument("--cv-folds", type=int, default=CV_FOLDS)
    parser.add_argument("--degree", type=int, default=POLY_DEGREE,
                        help="Polynomial regression degree.")
    parser.add_argument("--alpha", type=float, default=ALPHA,
                        help="Significance level for stepwise selection "
                             "and assumption tests.")
    parser.add_argument("--no-capping", action="store_true",
                        help="Do not winsorise outlying predictor values.")
    parser.add_argument("--tune-svr", action="store_true",
                        help="Grid-search the SVR hyper-parameters.")
    parser.add_argument("--quiet", action="store_true")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    if args.data:
        df = load_dataset(args.data)
    else:
        print("No --data given; analysing a synthetic mix-design dataset.\n")
        df = simulate_concrete(random_state=args.seed)

    test_df = load_dataset(args.test) if args.test else None

    report = StrengthReport(
        test_size=args.test_size,
        random_state=args.seed,
        alpha=args.alpha,
        poly_degree=args.degree,
        cv_folds=args.cv_folds,
        cap_outliers=not args.no_capping,
        tune_svr=args.tune_svr,
    )
    report.run(df, test_df=test_df, outdir=args.outdir,
               verbose=not args.quiet)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
