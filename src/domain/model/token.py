from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class TokenClaims:
    """Decoded claims of a verified access token."""
    user_id: str
    issued_at: datetime
    expires_at: datetime
