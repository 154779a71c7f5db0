"""gRPC Server Infrastructure"""
