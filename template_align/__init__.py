"""
Feature-based coarse registration and best-template selection for 3D point clouds.
"""

__version__ = "0.1.0"
