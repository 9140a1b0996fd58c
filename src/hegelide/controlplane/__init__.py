"""Loopback HTTP control plane: lets tools inside a session open review tabs."""
