"""Share accounting."""
