"""
Core
Configuration, errors, logging and wiring.
"""
