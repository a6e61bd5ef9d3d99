"""HTTP proxy and WebSocket API"""
