"""Pangolin resource, target, lifecycle and status management."""
