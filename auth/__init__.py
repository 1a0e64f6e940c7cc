"""auth/ -- User registry, session table and access checks for authstore.

Layer rule: auth/ imports only stdlib + third-party libraries, plus core/ for
settings. It does NOT import from api/. api/ and main.py import from auth/,
not the other way around.
"""
