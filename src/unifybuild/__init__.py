"""unifybuild - build parameter compiler for embedded toolchains."""

__version__ = "0.1.0"
