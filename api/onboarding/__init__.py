"""
Onboarding: detect location fields in a tenant's data source and store the mapping.
"""
