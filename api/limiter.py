"""
api/limiter.py -- Shared slowapi rate limiter for the authentication surface.

Import this in both api/main.py (to mount as middleware) and
api/routes/auth.py (to apply limits with @auth_limit).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

auth_limit is a *shared* limit with scope "auth": every /auth/* route
decrements one counter per client address, so ten logins plus one register
from the same IP hits the same 10/minute budget. A per-route limit would let
a client spend the budget once per endpoint.

The `limits` memory storage increments counters under a lock, so the
read-then-increment is atomic per key under concurrent requests.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

auth_limit = limiter.shared_limit(get_settings().auth_rate_limit, scope="auth")
