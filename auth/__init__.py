"""auth/ -- Authentication and authorization package for Aionic.

Layer rule: auth/ imports stdlib, third-party libraries, core/ and
components/. It does NOT import from api/, cache/ (type hints aside) or
milestone/. api/ imports from auth/, not the other way around.
"""
