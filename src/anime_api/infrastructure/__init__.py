"""Infrastructure adapters: storage access and codecs."""
