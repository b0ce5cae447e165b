"""Core primitives shared by the domain and service layers."""
