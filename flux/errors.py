class FluxError(Exception):
    """Base class for errors raised inside the farm assistant."""


class SessionStoreError(FluxError):
    """Reading or writing a session failed, or a merge produced an invalid state."""


class CollaboratorError(FluxError):
    """An external collaborator (weather, market, AI, archive) failed."""


class TransientCollaboratorError(CollaboratorError):
    """Temporary I/O failure; callers fall back to default data."""


class WeatherUnavailableError(TransientCollaboratorError):
    pass


class MarketDataUnavailableError(TransientCollaboratorError):
    pass


class AdviceGenerationError(CollaboratorError):
    """The AI collaborator could not produce advice or a feedback acknowledgment."""
