"""
Bearer-token verification for the HTTP surface.

Tokens are issued by the login service; this package only verifies them.
"""
