"""Chat completion pipeline."""
