"""Utility modules for the SkateBot package.

This package contains helper functions for:
- Planar heading, rotation and frame transforms
- Periodic signal generation and squashing functions
- Keyframe interpolation index arithmetic
- Logging and naming helpers
"""
