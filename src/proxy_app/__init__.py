"""FastAPI transport shell for the Anthropic-compatible relay."""
