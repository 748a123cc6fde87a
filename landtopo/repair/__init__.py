"""
Topology checks and repairs of raw feature layers.
"""
