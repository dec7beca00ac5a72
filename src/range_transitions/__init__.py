"""
Range Transitions - spatial state classification for tracked animals.

Pipeline stages:
- Classification: each GPS location -> home / other / transit
- Transitions: per-individual, time-ordered state switches
- Summary: one record per individual (populations visited, switch rates)
- Aggregation: grouped state / transition percentages

Usage:
    python -m range_transitions.run_all --locations data/locations.csv --ranges data/ranges.geojson
"""

__version__ = "1.0.0"
