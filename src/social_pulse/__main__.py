"""Allow ``python -m social_pulse``."""

from social_pulse.cli import app

if __name__ == "__main__":
    app()
