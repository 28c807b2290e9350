"""flashdeck: spaced-repetition scheduling for flashcard decks."""

__version__ = "0.1.0"
