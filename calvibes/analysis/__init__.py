"""Event normalization, aggregation and metrics"""
