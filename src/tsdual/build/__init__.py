"""Compile, patch and publish dual-format packages."""
