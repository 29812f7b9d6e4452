"""
Token authentication for the API.

Kept in its own module so that Django REST framework can import the
authentication class during initialisation without pulling in any view
modules.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """Token authentication using the ``Token`` keyword.

    Exists to provide a stable import path for the project's configuration
    and to allow later customisation.
    """

    keyword = 'Token'
