"""
Core modules for Multi AI Hub.

This package contains the prompt-usage limiter, prompt classification,
model selection, and avatar personas.
"""
