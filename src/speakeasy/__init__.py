"""speakeasy - unified text-to-speech with provider fallback and audio caching."""

__version__ = "0.1.0"
__all__ = ["say", "speak"]


def __getattr__(name: str):  # type: ignore[no-untyped-def]
    if name in ("speak", "say"):
        from . import api

        return getattr(api, name)
    raise AttributeError(f"module 'speakeasy' has no attribute {name!r}")
