"""
flowtester: Scripted integration testing for message-flow graphs.

Test cases script actions against a live dataflow runtime, intercept its
message lifecycle, and tally the checks those actions perform.
"""

__version__ = "0.1.0"
