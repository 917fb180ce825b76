"""Catalog Optimizer: bulk, reversible AI metadata mutations for product catalogs."""
