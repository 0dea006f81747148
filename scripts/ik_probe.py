"""Solve a single IK target against a config file and report the FK residual."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

import numpy as np

from armkin.core.ik import GeometricIKSolver, Pose, SolveOptions
from armkin.core.ik.diagnostics import LoggingSink
from armkin.utils.config_manager import ConfigManager
from armkin.utils.logger import setup_logging_from_config


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the geometric IK solver on one target position."
    )
    parser.add_argument("x", type=float)
    parser.add_argument("y", type=float)
    parser.add_argument("z", type=float)
    parser.add_argument(
        "--quat",
        type=float,
        nargs=4,
        metavar=("QX", "QY", "QZ", "QW"),
        help="Target orientation; enables full-pose IK",
    )
    parser.add_argument(
        "--seed",
        type=float,
        nargs="+",
        help="Seed joint values (defaults to the chain's default state)",
    )
    parser.add_argument("--config", type=Path, help="YAML config to load the chain from")
    parser.add_argument("--debug", action="store_true", help="Log debug markers")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config_manager = ConfigManager(args.config)
    logging_config = config_manager.section("logging")
    if args.debug:
        logging_config = dict(logging_config, level="DEBUG")
    setup_logging_from_config(logging_config)

    solver = GeometricIKSolver.from_config(config_manager.section("kinematics"), sink=LoggingSink(logging.INFO))
    if not solver.initialized:
        print("Solver failed to initialize; see log for details.")
        return 1

    seed = args.seed if args.seed is not None else solver.default_state().positions
    if args.quat is not None:
        target = Pose(np.array([args.x, args.y, args.z]), np.array(args.quat))
    else:
        target = Pose.from_position([args.x, args.y, args.z])

    result = solver.solve(target, seed, SolveOptions(position_only=args.quat is None, debug=args.debug))
    print(f"Result: {result.error_code.name}")
    for name, value in zip(solver.get_joint_names(), result.solution):
        print(f"  {name:>16}: {value: .6f}")

    if result.success:
        reached = solver.forward_kinematics(result.solution)
        error = float(np.linalg.norm(reached.position - target.position))
        print(f"FK position: {np.round(reached.position, 6).tolist()} (error {error:.3e})")
    return 0 if result.success else 1


if __name__ == "__main__":
    raise SystemExit(main())
