"""capgraph: call graphs and capability health over an extracted symbol index."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("capgraph")
except PackageNotFoundError:
    __version__ = "dev"
