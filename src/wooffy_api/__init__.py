"""Wooffy membership API."""
