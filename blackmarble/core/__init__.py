"""Tile grid, decoding, temporal stacking and zonal statistics"""
