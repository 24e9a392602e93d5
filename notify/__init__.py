"""notify/ -- Out-of-band message delivery (email) for NileGuide Auth.

Layer rule: notify/ imports only stdlib, core/, and auth/errors.
It does NOT import from api/. auth/ receives a Notifier through its
constructor and never imports notify/ directly.
"""
