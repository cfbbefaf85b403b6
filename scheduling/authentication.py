"""
Token authentication for clients of the legacy front end.

JWTs issued by the identity service are verified by simplejwt (see
``REST_FRAMEWORK`` in settings).  Older clients send an opaque DRF token
instead; this subclass keeps a stable import path for them and pins the
``Token`` keyword so it never competes with ``Bearer``.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    keyword = 'Token'
