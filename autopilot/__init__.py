"""
Fantasy Autopilot

Closed-loop decision-and-learning system for fantasy team managers:
tracks recommendations, records outcomes, mines patterns, runs
strategy experiments and reacts to real-time events.
"""

__version__ = "0.4.0"
