"""AI Gateway: request routing and model selection across LLM backends."""
