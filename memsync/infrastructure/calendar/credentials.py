"""
Credential suppliers for the external calendar provider.
"""

from __future__ import annotations


class StaticCredentialProvider:
    """In-memory map of user id to access token.

    Session handling lives outside MemSync; the host application pushes tokens
    in with ``set_token`` as users sign in and removes them on sign-out.
    """

    def __init__(self, tokens: dict[str, str] | None = None):
        self._tokens: dict[str, str] = dict(tokens or {})

    async def get_access_token(self, user_id: str) -> str | None:
        return self._tokens.get(user_id)

    def set_token(self, user_id: str, access_token: str) -> None:
        self._tokens[user_id] = access_token

    def clear_token(self, user_id: str) -> None:
        self._tokens.pop(user_id, None)
