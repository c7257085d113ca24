"""query/ -- Filter grammar and safe query assembly for catalog listings.

Layer rule: query/ imports only stdlib and core/.
It does NOT import from api/, auth/, or catalog/.
"""
