"""Exceptions raised by the N-body pipeline."""


class ConfigurationError(ValueError):
    """Invalid simulation or rendering parameters.

    Raised while building a store, image or frame settings, never from
    inside a running frame.
    """


class ResourceExhaustionError(MemoryError):
    """Not enough host or device memory for the requested configuration.

    Fatal to the configuration attempt only. Callers can retry with fewer
    bodies or a smaller image.
    """

    def __init__(self, message: str, required_bytes: int = 0):
        super().__init__(message)
        self.required_bytes = required_bytes
