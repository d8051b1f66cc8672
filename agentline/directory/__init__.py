"""Company directory — agent registry, presence, messaging and email."""
