"""Reference motion generation for SkateBot.

This package provides the keyframe motion library and reference generators:

- Motion clip indexing over a flat keyframe table
- Fractional playback cursor and two-frame linear interpolation
- Finite-difference marker velocities from consecutive keyframes
- Board-anchored reference pose synthesis for the pushing motion

Reference generators are pure: they read the model tables and a snapshot of
the simulation state and return new arrays, so they can be evaluated from
many planner rollouts at once.
"""
