"""
Realtime presence relay app.

This app contains:
- A Channels consumer for `/websocket` (path configurable)
- The session registry (last-known username + state per participant)
- The relay server that fans join/update/leave events out to every other socket
"""
