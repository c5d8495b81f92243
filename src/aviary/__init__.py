"""Interactive boids flocking simulation with a depth illusion."""

__version__ = "0.1.0"
