"""Maps ephemeral connection ids back to stable client ids."""

from typing import Optional
import logging

from studymatch.core.exceptions import JoinValidationError
from studymatch.core.relay import SignalingRelay
from studymatch.database.member_repository import MemberRepository

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Keeps waiting queue entries attached to a client across reconnects.

    Only waiting members are rebound. A matched member keeps the connection
    id it had when its room was formed.
    """

    def __init__(self, members: Optional[MemberRepository] = None,
                 relay: Optional[SignalingRelay] = None):
        self._members = members or MemberRepository()
        self._relay = relay

    async def resolve(self, client_id: str, new_connection_id: str) -> bool:
        """Point the client's waiting records at ``new_connection_id``.

        Idempotent: repeating the call, or calling it for a client with
        nothing waiting, succeeds without changing anything.
        """
        missing = [
            field for field, value in (("clientId", client_id), ("newConnectionId", new_connection_id))
            if not value or not str(value).strip()
        ]
        if missing:
            raise JoinValidationError(missing)

        if self._relay is not None:
            connection = self._relay.get(new_connection_id)
            if connection is not None:
                connection.client_id = client_id

        updated = await self._members.rebind_waiting(client_id, new_connection_id)
        if updated:
            logger.info(f"Rebound {updated} waiting member(s) of client {client_id} to {new_connection_id}")
        return True
