"""
Google OAuth for the spreadsheet backend: connect flow and access-token refresh.
"""
