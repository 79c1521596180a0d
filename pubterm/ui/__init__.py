"""UI package (dispatcher, views, Textual shell)."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .app import PubApp as PubApp

__all__ = ["PubApp"]


def __getattr__(name: str):
    if name == "PubApp":
        from .app import PubApp

        return PubApp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
