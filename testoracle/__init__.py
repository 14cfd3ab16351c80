"""testoracle: unit test generation and execution with a local language model."""

__version__ = "0.1.0"
