"""Currently-airing engine: broadcast parsing, classification and ranking."""
