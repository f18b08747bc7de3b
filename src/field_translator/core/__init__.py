"""Boundary with the serving layer: metadata descriptors and hook points."""
