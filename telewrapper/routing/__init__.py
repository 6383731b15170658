"""
Routing core.

Decides which registered handlers run for an inbound event:

Dispatcher
  ├── Registry            – commands, patterns, catch-alls, audio, invalid, buttons
  ├── AuthorizationGate   – stale filter, chat scope, unauthorized reports
  └── ButtonBridge        – callback data → button handler
"""
