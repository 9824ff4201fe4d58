"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the vending state machine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. atomicity.py - All-or-nothing operation semantics
2. authorization.py - Only the admin manages the catalog and the money
3. invariants.py - Stock, price and balance bounds after every operation
4. conservation.py - Token supply accounting in ledger mode
5. pagination.py - Complete, ordered catalog enumeration

These tests use hypothesis for property-based testing.
"""
