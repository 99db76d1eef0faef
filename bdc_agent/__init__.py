"""VinSolutions inventory sync and BDC reply-suggestion service."""
