"""Storage - persisted classification cache"""
