"""Services module.

This module provides the service layer architecture:
- exceptions: Custom service exceptions
- branches: Branch directory (read-only branch configuration)
- queue: Queue number allocation and the per-day sequence store
- tickets: Registration, ticket persistence and the ticket state machine
- mercure: Push notifications to display boards
"""
