"""
Convenience entry point for running the engine as a module.

Usage: python -m bookingengine [command] [options]
"""

from .cli.app import app

if __name__ == "__main__":
    app()
