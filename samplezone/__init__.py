"""
SampleZone - onset detection and velocity/round-robin grouping for
multi-sampled instrument recordings.
"""

__version__ = "0.1.0"
