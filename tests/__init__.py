"""Test package for Little Math Star.

Core modules are exercised directly with seeded generators and a fake clock.
UI smoke tests run headlessly using pygame's dummy video and audio drivers,
so no real window opens.  Run ``pytest`` from the project root.
"""
