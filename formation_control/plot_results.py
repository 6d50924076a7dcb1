#!/usr/bin/env python3
"""Plot a logged formation control run: python -m formation_control.plot_results"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .visualization import list_runs, plot_run_summary


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    parser = argparse.ArgumentParser(description="Plot trajectories and statistics of a run")
    parser.add_argument("--run", default=None, help="Run directory name (default: latest)")
    parser.add_argument("--results-dir", default="results", help="Directory holding run_* folders")
    parser.add_argument("--save", action="store_true", help="Write PNG files into the run directory")
    parser.add_argument("--no-show", action="store_true", help="Do not open plot windows")
    parser.add_argument("--list", action="store_true", help="List the available runs and exit")
    args = parser.parse_args(argv)

    try:
        runs = list_runs(Path(args.results_dir))
        if args.list:
            for i, run_dir in enumerate(runs, 1):
                logging.info(f"  {i}. {run_dir.name}")
            return 0

        if args.run:
            run_dir = Path(args.results_dir) / args.run
            if not run_dir.is_dir():
                raise FileNotFoundError(f"Run directory not found: {run_dir}")
        elif runs:
            run_dir = runs[-1]
        else:
            raise FileNotFoundError(f"No run directories found in {args.results_dir}")

        logging.info(f"Plotting run: {run_dir.name}")
        plot_run_summary(run_dir, save=args.save, show=not args.no_show)
    except (FileNotFoundError, ValueError) as e:
        logging.error(str(e))
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
