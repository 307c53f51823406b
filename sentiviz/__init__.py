"""SentiViz - live voice sentiment visualizer."""

__version__ = "0.1.0"
