"""Content acquisition and chunked generation pipeline."""
