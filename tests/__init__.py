"""Season ranking test suite."""
