"""Test suite for the pytest-actor package.

This package contains unit tests validating step rendering and status
propagation, the sequential recorder, driver loading, the element-action
DSL and the pytest plugin hooks.
"""
