"""OSC → DMX level and fade sender for Open Lighting Architecture nodes."""

from .errors import SocketCreationError, ValidationError
from .level_setter import LevelSetter, SetResult

__version__ = "0.1.0"

__all__ = ["LevelSetter", "SetResult", "SocketCreationError", "ValidationError", "__version__"]
