"""Trace cache, peer membership, logging and sampler configuration for a sampling proxy."""

__version__ = "0.1.0"