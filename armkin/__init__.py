"""Closed-form geometric inverse kinematics for serial revolute arms."""

__version__ = "0.1.0"
