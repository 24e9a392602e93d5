"""auth/ -- Credential, session, and password-reset core for NileGuide Auth.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or notify/. Collaborators (store, hasher,
notifier, settings) are passed into constructors; api/main.py wires them.
"""
