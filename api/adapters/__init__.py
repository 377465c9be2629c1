"""
Data source adapters: one contract, one implementation per backend family.
"""
