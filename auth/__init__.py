"""auth/ -- Credentials, access tokens and permission checks.

Layer rule: auth/ imports only stdlib, third-party libraries, core/ and query/.
It does NOT import from api/ or catalog/.
api/ imports from auth/, not the other way around.
"""
