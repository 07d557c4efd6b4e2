"""Request routing: chat completions and image generation."""
