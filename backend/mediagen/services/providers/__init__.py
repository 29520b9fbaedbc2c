"""Generation provider adapters.

Each provider module implements the async task pattern:
  POST create task → external job id
  GET  task status → normalized status, info and result snapshots
"""
