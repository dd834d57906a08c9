"""flashmark - sync flashcards written in Markdown with Anki."""

__version__ = "0.1.0"
