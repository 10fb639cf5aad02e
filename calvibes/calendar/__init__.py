"""Calendar payload adapters"""
