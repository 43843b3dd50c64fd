"""
Cosmo - hands-free pedestrian navigation assistant.

Wake-word voice control, destination search, turn-by-turn guidance and
hazard, wrong-way and off-route monitoring.
"""

__version__ = "1.0.0"
