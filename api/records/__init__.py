"""
Feature read/write endpoints backed by the tenant's data source adapter.
"""
