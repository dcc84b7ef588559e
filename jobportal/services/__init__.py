"""
Session Services Package.

Persistence, remote API access and profile repair used by
:class:`~jobportal.auth.SessionManager`.  Wiring lives in
:mod:`jobportal.container`.
"""
