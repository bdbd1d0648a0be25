"""Provider gateway.

A uniform request/response capability in front of every LLM vendor used by
the pipeline (consolidated analysis, citation classification, sentiment):
  - ProviderRequest / ProviderResponse DTOs
  - Vendor adapters (OpenAI-compatible chat, Gemini)
  - Hugging Face text classifier for the legacy sentiment provider
"""
