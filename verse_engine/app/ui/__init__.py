"""Gradio playground for the verse engine."""
