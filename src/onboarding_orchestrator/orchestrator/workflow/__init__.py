"""The sequential onboarding workflow.

This package holds:
- the per-step state machine
- the persisted checkpoint and its manager
- executor contracts, progress events and cancellation flags
- the step pipeline that ties them together

Control flow is restartable: every transition is persisted before the next
step starts.
"""

__all__: list[str] = []
