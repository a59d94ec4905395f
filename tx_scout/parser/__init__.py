"""Content classification, hash extraction and block signatures."""
