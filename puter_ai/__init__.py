"""Agentic coding assistant and chat client for Puter AI models."""
