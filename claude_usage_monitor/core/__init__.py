"""
Core modules for Claude Usage Monitor.

This package contains session segmentation, pricing, plan limits,
burn rate calculations and the monitor that ties them together.
"""
