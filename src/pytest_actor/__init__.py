"""Step runtime and element-action DSL for actor-driven test automation.

The `pytest_actor` package is the execution core of a behaviour-driven
automation DSL and integrates it with pytest.

Key features:
- steps describing every DSL call, with status propagation to meta-steps,
  prioritized timeouts and secret-safe rendering;
- a sequential recorder serializing independently awaited calls into one
  ordered, failure-tolerant task stream;
- element actions (single, each, any, all) run against a pluggable driver;
- step lifecycle events for reporters and plugins.
"""
