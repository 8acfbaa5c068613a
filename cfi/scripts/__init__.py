"""Runnable monitor and delivery scripts."""
