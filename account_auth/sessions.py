"""Listing an account's live sessions."""

from typing import Any, List, Mapping, Optional, Union

from .exceptions import UnknownAccount
from .services import AccountStore
from .tokens import SessionToken, TokenManager, session_from_record


async def active_sessions(store: AccountStore, tokens: TokenManager,
                          uid: str, now: Optional[int] = None) \
        -> List[SessionToken]:
    """
    Get the session tokens for ``uid`` that have not expired.

    Store order is preserved. Raw store rows are accepted as well as
    :class:`.SessionToken` instances.

    Raises
    ------
    :class:`.UnknownAccount`
        If ``uid`` is empty; the store is not consulted.

    """
    if not uid:
        raise UnknownAccount('Unknown account')
    rows: List[Union[SessionToken, Mapping[str, Any]]] = \
        await store.sessions(uid)  # type: ignore
    sessions = [row if isinstance(row, SessionToken)
                else session_from_record(row) for row in rows]
    return tokens.filter_live(sessions, now)  # type: ignore
