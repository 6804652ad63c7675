"""sublmnl - subliminal audio generation: speech synthesis mixed under music."""

__version__ = "0.1.0"
