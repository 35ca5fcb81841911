"""spacetimectl commands"""
