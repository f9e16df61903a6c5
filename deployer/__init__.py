"""Static site deployer: build a repository and publish it atomically."""

__version__ = "0.1.0"
