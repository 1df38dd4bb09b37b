"""Response guard, feed filter engine and the pipeline tying them together."""
