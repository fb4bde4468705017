"""
Review Kernel - Performance Plan Review & Approval Workflow

The workflow core behind performance-plan review:
- Role-gated, table-driven plan state machine
- Append-only, attributable comment ledgers per review stage
- Per-role approval records gating stage progression
- Optimistic-concurrency persistence contract with a single retry
"""

__version__ = "0.1.0"
