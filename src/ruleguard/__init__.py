"""ruleguard: route agent rule modules and check changes against them."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("ruleguard")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
