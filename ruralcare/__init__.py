"""Reminder scheduling and village health aggregation for rural care records.

This package contains the business logic and domain models, isolated from the
surrounding record storage so it is easy to test and reason about.
"""
