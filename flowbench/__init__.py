"""
flowbench: a network-experiment harness for video streaming scenarios.
"""

__version__ = "0.1.0"
