"""
Face, edge and node graphs of polygon and line layers.
"""
