"""
Heuristics that guess which columns of a table or sheet hold location data.
"""
