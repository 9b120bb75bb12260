"""Tessel theme engine: declarative image sets, geometry, atlas packing and hot reload."""
