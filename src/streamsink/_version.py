"""Package version; overwritten by hatch-vcs when building from a tag."""

__version__ = "0.0.0+local"
