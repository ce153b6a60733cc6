"""TetherDB command-line interface."""
