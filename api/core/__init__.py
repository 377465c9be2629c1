"""
Shared, cross-cutting code for the API.

`core/` holds the small building blocks several features use (DB wiring,
backend HTTP helpers, the credential vault). Keep backend-specific logic in
`adapters/` and feature logic in the corresponding feature package.
"""
