"""
SpendSense Core

Shared configuration, logging, error taxonomy and diagnostics.
"""
