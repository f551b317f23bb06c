"""Geometry kernels: draping, attribute packing, triangulation and the mesh builders."""
