"""Fuel-use CO2 emission estimates for armed-conflict scenarios."""

__version__ = "0.1.0"
