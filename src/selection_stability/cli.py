from __future__ import annotations
import argparse
import json
import logging
from pathlib import Path

import matplotlib

from .io import load_folder_as_df, select_design
from .report import format_table
from .simulate import simulate_dataset
from .stability import bootstrap_stability
from .utils import ensure_parent_dir, parse_int_list, parse_str_list, pretty_dict

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="selection-stability",
        description="Bootstrap selection stability of |t|-ranked predictors "
                    "(stability score + confidence interval per model size).",
    )
    src = p.add_argument_group("input")
    src.add_argument("--data", help="Folder containing CSV files")
    src.add_argument("--pattern", default="*.csv", help="Glob pattern for CSVs, default '*.csv'")
    src.add_argument("--target", help="Response column name (required with --data)")
    src.add_argument("--drop", default="",
                     help="Comma-separated columns to leave out of the predictors")
    src.add_argument("--simulate", action="store_true",
                     help="Use simulated data instead of --data")
    src.add_argument("--n-obs", type=int, default=100, help="Simulated observations")
    src.add_argument("--n-features", type=int, default=10, help="Simulated predictors")
    src.add_argument("--n-informative", type=int, default=4,
                     help="Simulated predictors with a non-zero slope (the first ones)")
    src.add_argument("--noise", type=float, default=1.0, help="Simulated noise std")

    est = p.add_argument_group("estimation")
    est.add_argument("--n-boot", type=int, default=100, help="Number of weighted resamples")
    est.add_argument("--seed", type=int, default=42, help="Random seed")
    est.add_argument("--dims", type=str, default=None,
                     help="Comma-separated model sizes, default 1..p-1")
    est.add_argument("--level", type=float, default=0.95, help="Confidence level")
    est.add_argument("--n-jobs", type=int, default=1, help="Parallel fits (joblib)")

    out = p.add_argument_group("output")
    out.add_argument("--plot-path", type=str, default="stability.png",
                     help="Output path for the stability plot ('' to disable)")
    out.add_argument("--table-csv", type=str, default="stability_table.csv",
                     help="Path to save the CI table CSV ('' to disable)")
    out.add_argument("--pseudo-csv", type=str, default="",
                     help="Path to save the pseudo-value matrix CSV ('' to disable)")
    out.add_argument("--report-json", type=str, default="report.json",
                     help="Path to save a small JSON report ('' to disable)")
    out.add_argument("--log-level", default="INFO",
                     choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return p


def main(argv=None):
    p = build_parser()
    args = p.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="[%(levelname)s] %(name)s: %(message)s",
    )
    matplotlib.use("Agg")

    # load data
    if args.simulate:
        try:
            df, beta = simulate_dataset(
                n_obs=args.n_obs,
                n_features=args.n_features,
                n_informative=args.n_informative,
                noise=args.noise,
                random_state=args.seed,
            )
        except ValueError as exc:
            p.error(str(exc))
        target = "y"
        logger.info("Simulated data, active predictors: %s",
                    list(beta[beta != 0].index))
    elif args.data:
        if not args.target:
            p.error("--target is required with --data")
        try:
            df = load_folder_as_df(args.data, args.pattern)
        except FileNotFoundError as exc:
            p.error(str(exc))
        target = args.target.lower()
    else:
        p.error("one of --data or --simulate is required")

    # normalize empty strings -> None for outputs
    plot_path = args.plot_path or None
    table_csv = args.table_csv or None
    pseudo_csv = args.pseudo_csv or None
    for path in (plot_path, table_csv, pseudo_csv, args.report_json):
        if path:
            ensure_parent_dir(path)

    try:
        X, y = select_design(df, target, exclude=[c.lower() for c in parse_str_list(args.drop)])
        dims = parse_int_list(args.dims) if args.dims else None
        res = bootstrap_stability(
            X,
            y,
            n_boot=args.n_boot,
            dims=dims,
            random_state=args.seed,
            level=args.level,
            n_jobs=args.n_jobs,
            progress=True,
            plot_path=plot_path,
            save_table_csv=table_csv,
            save_pseudo_csv=pseudo_csv,
        )
    except ValueError as exc:  # includes StabilityError
        p.error(str(exc))

    summary = res.summary()
    if args.report_json:
        Path(args.report_json).write_text(json.dumps(summary, indent=2), encoding="utf-8")

    print(format_table(res).to_string())
    print()
    print(pretty_dict({k: v for k, v in summary.items() if k != "stability"}))
    print("Done.")
    return 0


if __name__ == "__main__":
    main()
