"""
Custom authentication backend for token-based auth.

A subclass of Django REST framework's ``TokenAuthentication`` kept in
its own module so that the REST framework can import it during
initialisation without pulling in any view code.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """Token authentication using the ``Token`` keyword.

    Provides a stable import path for the project's configuration and
    room for later customisation.
    """

    keyword = 'Token'
