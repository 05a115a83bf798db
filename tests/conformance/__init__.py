"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the collateral engine.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. atomicity.py - Every operation commits in full or leaves no trace
2. solvency.py - Accounts stay healthy and the books stay balanced
3. reentrancy.py - No operation can start while another is in progress
4. determinism.py - Identical inputs produce identical state and events

These tests use hypothesis for property-based testing.
"""
