from zai_cli.instrumentation import instrument, uninstrument

__version__ = "1.0.0"

__all__ = ["instrument", "uninstrument", "__version__"]
