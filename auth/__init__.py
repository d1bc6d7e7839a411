"""auth/ -- Credential service core for AuthGate.

Password hashing, session tokens, 2FA challenges, password-reset tokens,
the user store, and outbound notifications. AuthService (auth/service.py)
ties them together.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or core/. api/ builds the collaborators from
core.config and injects them; the dependency never runs the other way.
"""
