"""Exception taxonomy shared by the H0 persistence pipeline."""
from pathlib import Path
from typing import Optional, Union


class H0AnalysisError(Exception):
    pass


class InputNotFoundError(H0AnalysisError, FileNotFoundError):
    """Input directory or image file does not exist."""


class DecodeError(H0AnalysisError, ValueError):
    """A file could not be decoded as a supported raster image."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.path = None if path is None else Path(path)

    def __reduce__(self):
        # Keep the offending path when crossing a process pool boundary
        return type(self), (str(self), self.path)


class DegenerateInputError(H0AnalysisError, ValueError):
    """Intensity grid cannot be turned into a cubical filtration."""


class ConfigError(H0AnalysisError, ValueError):
    pass
