"""Planner tasks for SkateBot.

A task couples a residual function, evaluated many times per step on cloned
planner states, with a transition function that runs once per accepted step on
the canonical simulation state. Tasks register themselves by name and read
their constants from gin configuration files stored next to this module.
"""
