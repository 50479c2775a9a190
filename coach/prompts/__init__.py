"""Prompt templates for the trading coach."""
