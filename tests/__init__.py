"""turncore test suite."""
