"""State tracking for the Salesforce connection lifecycle."""
from enum import Enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass
class ConnectionContext:
    """Holds the current state and bookkeeping for the connection."""
    state: ConnectionState = ConnectionState.DISCONNECTED
    instance_url: Optional[str] = None
    auth_method: Optional[str] = None
    last_attempt: Optional[datetime] = None
    last_error: Optional[str] = None

    def update_state(self, new_state: ConnectionState, error: Optional[str] = None):
        """Update the current state and optionally record an error message."""
        self.state = new_state
        self.last_error = error
        if new_state is ConnectionState.CONNECTING:
            self.last_attempt = datetime.now(timezone.utc)
