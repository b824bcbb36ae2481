"""
Transport and subscriber adapters: serial line, UDP listener and the
WebSocket subscriber server.
"""
