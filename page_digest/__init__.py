"""Page Digest: capture page content and summarize or translate it with Gemini."""

__version__ = "1.0.0"
