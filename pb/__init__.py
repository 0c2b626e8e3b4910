"""payload-bundler: bundle a plugin-loader release with a local payload."""

__version__ = "0.3.0"
