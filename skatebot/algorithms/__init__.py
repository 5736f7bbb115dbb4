"""Algorithms for SkateBot task logic.

Currently provides the stochastic goal relocation used to keep the board
travelling: once the board reaches its goal, a new goal is placed ahead of it
and to a randomly chosen side.
"""
