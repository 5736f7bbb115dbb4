"""Simulation-side glue between SkateBot and MuJoCo.

Contains the name-to-index resolution performed once per model, small helpers
over MuJoCo data structures, and a stepping-loop host used by the examples.
"""


class ConfigurationError(ValueError):
    """The loaded model and the task disagree on names, layout or dimensions.

    This is fatal: continuing would silently feed a corrupted residual to the
    planner, so it is never caught inside the package.
    """
