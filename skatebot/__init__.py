"""SkateBot: residual and reference-motion core for a humanoid skateboard pushing task.

This package provides the pieces a receding-horizon planner needs to drive a
simulated humanoid that pushes a skateboard toward a moving goal:
- Keyframe motion library indexing and interpolation
- Reference pose synthesis anchored to the moving board
- Stochastic goal relocation
- Residual (cost vector) assembly for trajectory optimization
- Mode / episode transition handling on the canonical simulation state

Physics integration, planning and model loading are provided by MuJoCo and the
host planner; this package only reads from and writes to their state.
"""
