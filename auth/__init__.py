"""auth/ -- Identity and session package for the credential service.

Layer rule: auth/ imports only stdlib + third-party libraries, plus core/
for Settings. It does NOT import from api/.
api/ imports from auth/, not the other way around.
"""
