"""
Exceptions raised by the VibeLink engine.
"""


class VibeEngineError(Exception):
    """Base class for engine errors"""
    pass


class ValidationError(VibeEngineError, ValueError):
    """A vote or request carried an out-of-range or unknown value"""
    pass


class CooldownError(VibeEngineError):
    """The user voted for this venue too recently"""

    def __init__(self, user_id: str, venue_id: str, remaining_ms: int):
        self.user_id = user_id
        self.venue_id = venue_id
        self.remaining_ms = remaining_ms
        super().__init__(
            f"User {user_id} must wait {remaining_ms}ms before voting on venue {venue_id} again"
        )


class StoreError(VibeEngineError):
    """A repository backend failed to read or write"""
    pass
