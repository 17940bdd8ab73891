"""Simulation core: input handling, samplers, engines and aggregation."""
