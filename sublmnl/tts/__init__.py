"""Speech provider registry and factory."""

from sublmnl.tts.base import SpeechProvider

ENGINE_REGISTRY: dict[str, type[SpeechProvider]] = {}


def register_engine(name: str):
    """Decorator to register a speech provider class."""
    def decorator(cls):
        ENGINE_REGISTRY[name] = cls
        return cls
    return decorator


def get_engine(name: str) -> SpeechProvider:
    """Instantiate a speech provider by name."""
    if name not in ENGINE_REGISTRY:
        available = ", ".join(ENGINE_REGISTRY.keys()) or "(nessuno)"
        raise ValueError(f"Engine sconosciuto '{name}'. Disponibili: {available}")
    return ENGINE_REGISTRY[name]()


def list_engines() -> list[str]:
    """Return names of all registered engines."""
    return list(ENGINE_REGISTRY.keys())


def import_engines() -> None:
    """Import all engine modules to trigger registration."""
    import sublmnl.tts.edge_engine  # noqa: F401
    import sublmnl.tts.elevenlabs_engine  # noqa: F401
    import sublmnl.tts.openai_engine  # noqa: F401
