"""LLM access - Gemini model, shared call, and the generation gateway"""
